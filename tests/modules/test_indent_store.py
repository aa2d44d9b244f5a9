"""
Tests for the Indent Store (``siteflow_modules.indent.service``).

Covers creation, reads, the full approval chain, every failure kind on the
write path, the transition log, and the change notices published after
commit.  Every failing transition must leave the stored request unchanged.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from siteflow_kernel.exceptions import (
    ForbiddenTransitionError,
    IllegalTransitionError,
    NotFoundError,
    StaleStateError,
    TerminalStateError,
    ValidationError,
)
from siteflow_kernel.services.change_feed import ChangeEvent
from siteflow_modules.indent.models import ActorRole, IndentStatus, RequestItem, Urgency
from siteflow_modules.indent.payloads import (
    Closure,
    GoodsReceipt,
    GRNCompletion,
    IndentDraft,
    PMDecision,
    PORaise,
    ProcurementReview,
    QSAnalysis,
    QuoteSubmission,
    Resubmission,
)
from siteflow_modules.indent.tracker import render_tracker

S = IndentStatus
R = ActorRole


# =========================================================================
# Create
# =========================================================================


class TestCreate:

    def test_create_raises_indent(self, indent_store, make_draft, deterministic_clock):
        request = indent_store.create(make_draft(), requested_by="ravi")

        assert request.status == S.RAISED_BY_SE
        assert request.requested_by == "ravi"
        assert request.project_name == "Tower B"
        assert request.urgency == Urgency.HIGH
        assert request.items == (RequestItem("Cement", Decimal("50"), "Bags"),)
        assert request.notes == "Slab casting on Friday"
        assert request.version == 1
        assert request.created_at == deterministic_clock.now()
        assert request.quotes == ()

    def test_items_keep_their_order(self, indent_store, make_draft):
        items = (
            RequestItem("Cement", 50, "Bags"),
            RequestItem("Steel", 2, "Tonnes"),
            RequestItem("Sand", 10, "Brass"),
        )
        request = indent_store.create(make_draft(items=items), requested_by="ravi")
        assert [i.material for i in request.items] == ["Cement", "Steel", "Sand"]

    def test_blank_project_uses_configured_default(self, indent_store, make_draft):
        request = indent_store.create(make_draft(project_name="  "), requested_by="ravi")
        assert request.project_name == "Unknown Project"

    def test_notes_are_optional(self, indent_store, make_draft):
        request = indent_store.create(make_draft(notes=None), requested_by="ravi")
        assert request.notes is None

    def test_deadline_stored(self, indent_store, make_draft):
        request = indent_store.create(make_draft(deadline=date(2024, 1, 15)), requested_by="ravi")
        assert indent_store.get(request.id).deadline == date(2024, 1, 15)

    def test_empty_items_rejected(self, indent_store, make_draft):
        with pytest.raises(ValidationError) as exc_info:
            indent_store.create(make_draft(items=()), requested_by="ravi")
        assert "items" in exc_info.value.fields
        assert indent_store.list() == []

    def test_zero_quantity_rejected(self, indent_store, make_draft):
        with pytest.raises(ValidationError) as exc_info:
            indent_store.create(
                make_draft(items=(RequestItem("Cement", 0, "Bags"),)), requested_by="ravi"
            )
        assert exc_info.value.fields == ("items[0].quantity",)

    def test_requester_required(self, indent_store, make_draft):
        with pytest.raises(ValidationError) as exc_info:
            indent_store.create(make_draft(), requested_by="  ")
        assert "requested_by" in exc_info.value.fields

    def test_non_draft_rejected(self, indent_store):
        with pytest.raises(ValidationError):
            indent_store.create(PMDecision(pm_comments="not a draft"), requested_by="ravi")

    def test_create_records_first_history_step(self, indent_store, raised_indent):
        history = indent_store.history(raised_indent.id)
        assert len(history) == 1
        first = history[0]
        assert first.sequence == 1
        assert first.from_status is None
        assert first.to_status == S.RAISED_BY_SE
        assert first.action == "raise"
        assert first.actor_role == R.SITE_ENGINEER
        assert first.actor_name == "ravi"
        assert first.payload["urgency"] == "High"

    def test_create_publishes_insert(self, indent_store, make_draft, change_feed):
        notices = []
        change_feed.subscribe(notices.append)
        request = indent_store.create(make_draft(), requested_by="ravi")
        assert len(notices) == 1
        assert notices[0].event == ChangeEvent.INSERT
        assert notices[0].entity_id == request.id
        assert notices[0].status == "Raised_By_SE"


# =========================================================================
# Reads
# =========================================================================


class TestReads:

    def test_get_unknown_raises_not_found(self, indent_store):
        missing = uuid4()
        with pytest.raises(NotFoundError) as exc_info:
            indent_store.get(missing)
        assert exc_info.value.entity_id == str(missing)

    def test_list_newest_first(self, indent_store, make_draft, deterministic_clock):
        first = indent_store.create(make_draft(), requested_by="ravi")
        deterministic_clock.advance(60)
        second = indent_store.create(make_draft(), requested_by="ravi")
        assert [r.id for r in indent_store.list()] == [second.id, first.id]

    def test_list_filters(self, indent_store, make_draft, deterministic_clock):
        tower = indent_store.create(make_draft(project_name="Tower B"), requested_by="ravi")
        deterministic_clock.advance(1)
        villa = indent_store.create(make_draft(project_name="Villa 9"), requested_by="meena")
        indent_store.apply_transition(villa.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok"))

        assert [r.id for r in indent_store.list(project_name="Villa 9")] == [villa.id]
        assert [r.id for r in indent_store.list(status=S.RAISED_BY_SE)] == [tower.id]
        assert [r.id for r in indent_store.list(status="Approved_By_PM")] == [villa.id]
        assert [
            r.id for r in indent_store.list(lambda r: r.requested_by == "meena")
        ] == [villa.id]

    def test_inbox_by_role(self, indent_store, make_draft, advance_indent):
        fresh = indent_store.create(make_draft(), requested_by="ravi")
        at_costing = advance_indent(
            indent_store.create(make_draft(), requested_by="ravi"), S.QS_ANALYSIS
        )

        assert [r.id for r in indent_store.inbox(R.PM)] == [fresh.id]
        assert [r.id for r in indent_store.inbox(R.COSTING)] == [at_costing.id]
        assert indent_store.inbox(R.MD) == []

    def test_status_counts(self, indent_store, make_draft):
        for _ in range(2):
            indent_store.create(make_draft(), requested_by="ravi")
        villa = indent_store.create(make_draft(project_name="Villa 9"), requested_by="meena")
        indent_store.apply_transition(villa.id, R.PM, S.REJECTED_BY_PM, PMDecision("Over budget"))

        assert indent_store.status_counts() == {S.RAISED_BY_SE: 2, S.REJECTED_BY_PM: 1}
        assert indent_store.status_counts("Villa 9") == {S.REJECTED_BY_PM: 1}
        assert indent_store.status_counts("Nowhere") == {}

    def test_history_unknown_raises_not_found(self, indent_store):
        with pytest.raises(NotFoundError):
            indent_store.history(uuid4())


# =========================================================================
# Approval chain
# =========================================================================


class TestApprovalChain:

    def test_full_forward_chain(self, indent_store, raised_indent, advance_indent):
        done = advance_indent(raised_indent, S.COMPLETED)

        assert done.pm_comments == "Forwarded for costing"
        assert done.items[0].target_rate == Decimal("380")
        assert done.market_analysis == "Cement steady at 370-390 per bag"
        assert len(done.quotes) == 3
        assert done.ops_comments == "UltraTech selected"
        assert done.md_comments == "Approved"
        assert done.payment_ref == "UTR-20240101-01"
        assert done.procurement_comments == "Truck left the depot"
        assert done.grn_details == "INV-55"
        assert done.grn_photos == ("grn/inv-55-signed.jpg",)
        assert done.vendor_bill_photo == "grn/inv-55-bill.jpg"
        assert done.version == 9
        assert done.total_target_value == Decimal("19000")

        history = indent_store.history(done.id)
        assert [h.sequence for h in history] == list(range(1, 10))
        assert history[-1].to_status == S.COMPLETED

    def test_po_path_to_closed(self, indent_store, make_draft):
        request = indent_store.create(
            IndentDraft(items=(RequestItem("Cement", 50, "Bags"),), urgency=Urgency.HIGH),
            requested_by="ravi",
        )
        assert request.status == S.RAISED_BY_SE

        request = indent_store.apply_transition(
            request.id, R.PM, S.APPROVED_BY_PM, PMDecision(pm_comments="ok"),
            expected_status=S.RAISED_BY_SE,
        )
        assert request.status == S.APPROVED_BY_PM

        request = indent_store.apply_transition(
            request.id, R.PROCUREMENT, S.PO_RAISED, PORaise(po_number="PO-100"),
            expected_status=S.APPROVED_BY_PM,
        )
        assert request.po_number == "PO-100"

        request = indent_store.apply_transition(
            request.id, R.SITE_ENGINEER, S.GOODS_RECEIVED, GoodsReceipt(grn_details="INV-55"),
            expected_status=S.PO_RAISED,
        )
        assert request.status == S.GOODS_RECEIVED
        assert request.grn_details == "INV-55"

        request = indent_store.apply_transition(
            request.id, R.FINANCE, S.CLOSED, Closure(), expected_status=S.GOODS_RECEIVED
        )
        assert request.status == S.CLOSED

        with pytest.raises(TerminalStateError):
            indent_store.apply_transition(
                request.id, R.FINANCE, S.GOODS_RECEIVED, Closure(), expected_status=S.CLOSED
            )
        assert indent_store.get(request.id).status == S.CLOSED

    def test_pm_return_sets_comment_and_error_marker(self, indent_store, raised_indent):
        returned = indent_store.apply_transition(
            raised_indent.id, R.PM, S.RETURNED_TO_SE,
            PMDecision(pm_comments="insufficient detail"),
            expected_status=S.RAISED_BY_SE,
        )
        assert returned.status == S.RETURNED_TO_SE
        assert returned.pm_comments == "insufficient detail"
        assert render_tracker(returned.status).marker == "returned"

    def test_procurement_return_writes_procurement_comments(
        self, indent_store, raised_indent, advance_indent
    ):
        quoting = advance_indent(raised_indent, S.PROCUREMENT_QUOTING)
        returned = indent_store.apply_transition(
            quoting.id, R.PROCUREMENT, S.RETURNED_TO_SE,
            ProcurementReview(procurement_comments="insufficient detail"),
        )
        assert returned.procurement_comments == "insufficient detail"
        assert returned.pm_comments == "Forwarded for costing"

    def test_resubmission_goes_back_to_pm_review(self, indent_store, raised_indent):
        indent_store.apply_transition(
            raised_indent.id, R.PM, S.RETURNED_TO_SE, PMDecision(pm_comments="add drawings")
        )
        resubmitted = indent_store.apply_transition(
            raised_indent.id, R.SITE_ENGINEER, S.PM_REVIEW,
            Resubmission(notes="Drawings attached"),
        )
        assert resubmitted.status == S.PM_REVIEW
        assert resubmitted.notes == "Drawings attached"

        forwarded = indent_store.apply_transition(
            raised_indent.id, R.PM, S.QS_ANALYSIS, PMDecision(pm_comments="now complete")
        )
        assert forwarded.status == S.QS_ANALYSIS

    def test_qs_replaces_items(self, indent_store, raised_indent, advance_indent):
        at_costing = advance_indent(raised_indent, S.QS_ANALYSIS)
        new_items = (
            RequestItem("Cement OPC 53", 50, "Bags", target_rate=385),
            RequestItem("Admixture", 20, "Litres", target_rate="92.5"),
        )
        priced = indent_store.apply_transition(
            at_costing.id, R.COSTING, S.PROCUREMENT_QUOTING,
            QSAnalysis(items=new_items, market_analysis="firm", costing_comments="ok"),
        )
        assert priced.items == new_items
        assert indent_store.get(priced.id).items == new_items

    def test_ops_return_sends_back_to_pm(self, indent_store, raised_indent, advance_indent):
        from siteflow_modules.indent.payloads import OpsDecision

        at_ops = advance_indent(raised_indent, S.OPS_APPROVAL)
        back = indent_store.apply_transition(
            at_ops.id, R.OPS_HEAD, S.PM_REVIEW, OpsDecision(ops_comments="quotes too high")
        )
        assert back.status == S.PM_REVIEW
        assert back.ops_comments == "quotes too high"

    @pytest.mark.parametrize(
        "receipt, missing",
        [
            (
                GRNCompletion(grn_details="INV-1", grn_photos=(), vendor_bill_photo=None),
                ("grn_photos", "vendor_bill_photo"),
            ),
            (
                GRNCompletion(
                    grn_details="INV-1", grn_photos=("grn/signed.jpg",), vendor_bill_photo="  "
                ),
                ("vendor_bill_photo",),
            ),
            (
                GRNCompletion(grn_details="", grn_photos=("grn/signed.jpg",), vendor_bill_photo="b"),
                ("grn_details",),
            ),
        ],
    )
    def test_grn_completion_needs_invoice_and_both_photos(
        self, indent_store, raised_indent, advance_indent, receipt, missing
    ):
        pending = advance_indent(raised_indent, S.GRN_PENDING)
        with pytest.raises(ValidationError) as exc_info:
            indent_store.apply_transition(
                pending.id, R.SITE_ENGINEER, S.COMPLETED, receipt,
                expected_status=S.GRN_PENDING,
            )
        assert exc_info.value.fields == missing
        assert indent_store.get(pending.id) == pending

    def test_grn_completion_rejects_delivery_only_receipt(
        self, indent_store, raised_indent, advance_indent
    ):
        pending = advance_indent(raised_indent, S.GRN_PENDING)
        with pytest.raises(ValidationError, match="requires GRNCompletion"):
            indent_store.apply_transition(
                pending.id, R.SITE_ENGINEER, S.COMPLETED, GoodsReceipt(grn_details="INV-1")
            )
        assert indent_store.get(pending.id).status == S.GRN_PENDING


# =========================================================================
# Failure kinds leave state unchanged
# =========================================================================


class TestRejectedTransitions:

    def test_unknown_request(self, indent_store):
        with pytest.raises(NotFoundError):
            indent_store.apply_transition(uuid4(), R.PM, S.APPROVED_BY_PM, PMDecision("ok"))

    def test_stale_expected_status(self, indent_store, raised_indent):
        with pytest.raises(StaleStateError) as exc_info:
            indent_store.apply_transition(
                raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok"),
                expected_status=S.PM_REVIEW,
            )
        assert exc_info.value.expected_state == "PM_Review"
        assert exc_info.value.actual_state == "Raised_By_SE"
        assert indent_store.get(raised_indent.id) == raised_indent

    def test_stale_checked_before_legality(self, indent_store, raised_indent):
        with pytest.raises(StaleStateError):
            indent_store.apply_transition(
                raised_indent.id, R.SITE_ENGINEER, S.COMPLETED, None,
                expected_status=S.GRN_PENDING,
            )

    def test_reapplying_same_transition_fails(self, indent_store, raised_indent):
        indent_store.apply_transition(
            raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok"),
            expected_status=S.RAISED_BY_SE,
        )
        with pytest.raises(StaleStateError):
            indent_store.apply_transition(
                raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok"),
                expected_status=S.RAISED_BY_SE,
            )
        assert len(indent_store.history(raised_indent.id)) == 2

    def test_direct_jump(self, indent_store, raised_indent):
        with pytest.raises(IllegalTransitionError):
            indent_store.apply_transition(
                raised_indent.id, R.SITE_ENGINEER, S.COMPLETED, GoodsReceipt(grn_details="x")
            )
        assert indent_store.get(raised_indent.id) == raised_indent

    def test_wrong_role(self, indent_store, raised_indent):
        with pytest.raises(ForbiddenTransitionError):
            indent_store.apply_transition(
                raised_indent.id, R.PROCUREMENT, S.APPROVED_BY_PM, PMDecision("ok")
            )
        assert indent_store.get(raised_indent.id) == raised_indent

    def test_missing_required_field(self, indent_store, raised_indent):
        with pytest.raises(ValidationError) as exc_info:
            indent_store.apply_transition(
                raised_indent.id, R.PM, S.RETURNED_TO_SE, PMDecision(pm_comments="")
            )
        assert exc_info.value.fields == ("pm_comments",)
        assert indent_store.get(raised_indent.id) == raised_indent
        assert len(indent_store.history(raised_indent.id)) == 1

    def test_rejected_by_pm_is_terminal(self, indent_store, raised_indent):
        indent_store.apply_transition(
            raised_indent.id, R.PM, S.REJECTED_BY_PM, PMDecision("duplicate indent")
        )
        with pytest.raises(TerminalStateError):
            indent_store.apply_transition(
                raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("changed my mind")
            )

    def test_rejection_is_logged(self, indent_store, raised_indent, captured_logs):
        with pytest.raises(ForbiddenTransitionError):
            indent_store.apply_transition(
                raised_indent.id, R.MD, S.APPROVED_BY_PM, PMDecision("ok"), actor_name="md-user"
            )
        rejected = [r for r in captured_logs() if r["message"] == "indent_transition_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["error_code"] == "FORBIDDEN_TRANSITION"
        assert rejected[0]["actor_role"] == "md"

    def test_failed_guard_is_logged(
        self, indent_store, raised_indent, advance_indent, captured_logs
    ):
        quoting = advance_indent(raised_indent, S.PROCUREMENT_QUOTING)
        with pytest.raises(ValidationError):
            indent_store.apply_transition(
                quoting.id, R.PROCUREMENT, S.OPS_APPROVAL, QuoteSubmission(quotes=("a.pdf",))
            )
        rejected = [r for r in captured_logs() if r["message"] == "indent_transition_rejected"]
        assert rejected[-1]["guard"] == "enough_quotes"
        assert indent_store.get(quoting.id).status == S.PROCUREMENT_QUOTING


# =========================================================================
# Transition log and notices
# =========================================================================


class TestTransitionLog:

    def test_history_records_actor_and_payload(self, indent_store, raised_indent, deterministic_clock):
        deterministic_clock.advance(30)
        indent_store.apply_transition(
            raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("looks fine"),
            actor_name="priya",
        )
        step = indent_store.history(raised_indent.id)[-1]
        assert step.sequence == 2
        assert step.from_status == S.RAISED_BY_SE
        assert step.to_status == S.APPROVED_BY_PM
        assert step.action == "approve"
        assert step.actor_role == R.PM
        assert step.actor_name == "priya"
        assert step.payload == {"pm_comments": "looks fine"}
        assert len(step.payload_hash) == 64
        assert step.occurred_at == deterministic_clock.now()

    def test_version_and_updated_at_advance(self, indent_store, raised_indent, deterministic_clock):
        deterministic_clock.advance(45)
        approved = indent_store.apply_transition(
            raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok")
        )
        assert approved.version == raised_indent.version + 1
        assert approved.updated_at == deterministic_clock.now()
        assert approved.created_at == raised_indent.created_at

    def test_update_notice_after_commit(self, indent_store, raised_indent, change_feed):
        notices = []
        change_feed.subscribe(notices.append, entity_type="MaterialRequest")
        indent_store.apply_transition(raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok"))
        assert [(n.event, n.status) for n in notices] == [(ChangeEvent.UPDATE, "Approved_By_PM")]

    def test_no_notice_on_failure(self, indent_store, raised_indent, change_feed):
        notices = []
        change_feed.subscribe(notices.append)
        with pytest.raises(ValidationError):
            indent_store.apply_transition(raised_indent.id, R.PM, S.APPROVED_BY_PM, None)
        assert notices == []

    def test_applied_transition_logged(self, indent_store, raised_indent, captured_logs):
        indent_store.apply_transition(
            raised_indent.id, R.PM, S.APPROVED_BY_PM, PMDecision("ok"), actor_name="priya"
        )
        applied = [r for r in captured_logs() if r["message"] == "indent_transition_applied"]
        assert len(applied) == 1
        assert applied[0]["request_id"] == str(raised_indent.id)
        assert applied[0]["status"] == "Approved_By_PM"
        assert applied[0]["actor_name"] == "priya"
