"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from promptarena.db.models.user import UserRow, UserProfileRow
from promptarena.db.models.org import OrgRow, OrgMemberRow, OrgInvitationRow
from promptarena.db.models.prompt import PromptRow
from promptarena.db.models.scenario import ScenarioRow, ScenarioTurnRow, ScenarioExpectationRow
from promptarena.db.models.variable import VariableRow
from promptarena.db.models.api_key import ProviderApiKeyRow

__all__ = [
    "UserRow",
    "UserProfileRow",
    "OrgRow",
    "OrgMemberRow",
    "OrgInvitationRow",
    "PromptRow",
    "ScenarioRow",
    "ScenarioTurnRow",
    "ScenarioExpectationRow",
    "VariableRow",
    "ProviderApiKeyRow",
]
