"""Importing this package registers every table on Base.metadata (app factory, Alembic, tests)."""
from .authz import Base, User, utcnow  # noqa: F401
from .branch import Branch  # noqa: F401
from .service_request import ServiceRequest, StatusLogEntry, EstimateItem  # noqa: F401
from .dp_payment import DpPayment  # noqa: F401
from .work_log import WorkLogEntry  # noqa: F401
from .customer_log import CustomerLogEntry  # noqa: F401
from .media_asset import MediaAsset  # noqa: F401
from .public_view import PublicView  # noqa: F401
from .audit import AuditLog  # noqa: F401
from .setting import Setting  # noqa: F401
from .track_counter import TrackCounter  # noqa: F401
