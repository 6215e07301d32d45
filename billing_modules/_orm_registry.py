"""
Module ORM Registry (``billing_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains all table definitions before tables are created, and provide
``create_all_tables()`` -- the single entry point scripts and tests use to
build a complete schema with immutability listeners in place.

Architecture position
---------------------
**Modules layer** -- utility.  Imports kernel models and every
``billing_modules.*.orm`` module.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every module ORM module (idempotent)."""
    # Kernel tables first (categories, payment methods, ledger, sequences)
    import billing_kernel.models  # noqa: F401
    # fmt: off
    import billing_modules.invoicing.orm  # noqa: F401
    import billing_modules.commission.orm  # noqa: F401
    import billing_modules.payments.orm  # noqa: F401
    import billing_modules.funds.orm  # noqa: F401
    # fmt: on


def create_all_tables(engine: Engine | None = None) -> None:
    """Create every table and register immutability listeners."""
    from billing_kernel.db.engine import create_tables
    from billing_kernel.db.immutability import register_immutability_listeners

    import_all_orm_models()
    create_tables(engine)
    register_immutability_listeners()
