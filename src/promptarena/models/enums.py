"""String enums shared by the ORM rows and API schemas."""

from enum import StrEnum


class OrgRole(StrEnum):
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


class MemberStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INVITED = "INVITED"
    REMOVED = "REMOVED"


class InvitationStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class ContentStatus(StrEnum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class TurnType(StrEnum):
    USER = "USER"
    EXPECT = "EXPECT"


class ExpectationType(StrEnum):
    MUST_CONTAIN = "MUST_CONTAIN"
    MUST_CONTAIN_ANY = "MUST_CONTAIN_ANY"
    MUST_NOT_CONTAIN = "MUST_NOT_CONTAIN"
    REGEX = "REGEX"
    SEMANTIC_ASSERT = "SEMANTIC_ASSERT"


class Provider(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class Action(StrEnum):
    READ = "read"
    WRITE = "write"
    MANAGE = "manage"
    SETTINGS = "settings"


class Resource(StrEnum):
    SCENARIOS = "scenarios"
    PROMPTS = "prompts"
    VARIABLES = "variables"
    MEMBERS = "members"
    SETTINGS = "settings"
    ORGS = "orgs"


class ReasoningEffort(StrEnum):
    MINIMAL = "minimal"
    MEDIUM = "medium"
    HIGH = "high"


class Verbosity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ServiceTier(StrEnum):
    DEFAULT = "default"
    PRIORITY = "priority"


class PromptType(StrEnum):
    CURRENT = "current"
    EDITED = "edited"
