"""
Module ORM Registry (``siteflow_modules._orm_registry``).

Responsibility
--------------
Import every ORM model so ``Base.metadata`` knows all tables before
``create_all()`` runs, and offer ``create_all_tables()`` as the one call
scripts and tests use to build the schema and arm the write guards.
Importing a module's ``orm`` also declares its write guards.

Architecture position
---------------------
**Modules layer** -- utility.  Imports kernel models and every
``siteflow_modules.*.orm`` module.  MUST NOT be imported by
``siteflow_kernel``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Register kernel and module ORM models.  Idempotent."""
    import siteflow_kernel.models  # noqa: F401
    import siteflow_modules.dpr.orm  # noqa: F401
    import siteflow_modules.indent.orm  # noqa: F401
    import siteflow_modules.petty_cash.orm  # noqa: F401
    import siteflow_modules.tasks.orm  # noqa: F401


def create_all_tables(engine: Engine | None = None, *, guards: bool = True) -> None:
    """Create every table and, unless ``guards=False``, register the write guards."""
    from siteflow_kernel.db.engine import create_tables
    from siteflow_kernel.db.guards import register_write_guards

    import_all_orm_models()
    create_tables(engine)
    if guards:
        register_write_guards()
