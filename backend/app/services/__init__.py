from app.services.directory_service import DirectoryUser, SqlDirectory
from app.services.notification_service import CampusNotifier, NotificationDispatcher
from app.services.gate_pass_service import GatePassService
from app.services.gate_pass_queries import GatePassQueryService

__all__ = [
    "DirectoryUser",
    "SqlDirectory",
    "CampusNotifier",
    "NotificationDispatcher",
    "GatePassService",
    "GatePassQueryService",
]
