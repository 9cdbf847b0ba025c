from app.models.branch import Branch
from app.models.chat_message import ChatMessage
from app.models.query_record import QueryRecord, QueryRemark, SubQuery
from app.models.query_update import QueryUpdate
from app.models.sanctioned_application import SanctionedApplication
from app.models.user import User

__all__ = [
    "Branch",
    "ChatMessage",
    "QueryRecord",
    "QueryRemark",
    "SubQuery",
    "QueryUpdate",
    "SanctionedApplication",
    "User",
]
