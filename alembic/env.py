from logging.config import fileConfig

from alembic import context

from erpcore.core.config import get_settings
from erpcore.core.database import Base, build_engine
from erpcore.platform.sequence import models as sequence_models  # noqa: F401
from erpcore.platform.ledger import models as ledger_models  # noqa: F401
from erpcore.platform.stock import models as stock_models  # noqa: F401
from erpcore.business.parties import models as parties_models  # noqa: F401
from erpcore.business.sales import models as sales_models  # noqa: F401
from erpcore.business.purchasing import models as purchasing_models  # noqa: F401
from erpcore.business.expenses import models as expenses_models  # noqa: F401
from erpcore.business.quotations import models as quotations_models  # noqa: F401
from erpcore.business.inventory import models as inventory_models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_settings().database_url


def _configure(**kwargs: object) -> None:
    url = _database_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = build_engine(_database_url())

    with connectable.connect() as connection:
        _configure(connection=connection)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
