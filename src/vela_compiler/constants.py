"""
Constants shared by the YAML models, the renderers and the validator.
"""

# ============================================================
# PULL POLICIES
# ============================================================

PULL_ALWAYS = "always"
PULL_NOT_PRESENT = "not_present"
PULL_ON_START = "on_start"
PULL_NEVER = "never"

PULL_POLICIES = {PULL_ALWAYS, PULL_NOT_PRESENT, PULL_ON_START, PULL_NEVER}

# ============================================================
# RULESET MATCHERS / OPERATORS
# ============================================================

MATCHER_FILEPATH = "filepath"
MATCHER_REGEX = "regexp"

MATCHERS = {MATCHER_FILEPATH, MATCHER_REGEX}

OPERATOR_AND = "and"
OPERATOR_OR = "or"

OPERATORS = {OPERATOR_AND, OPERATOR_OR}

# ============================================================
# EVENTS / ACTIONS
# ============================================================

EVENT_PULL = "pull_request"
EVENT_DEPLOY = "deployment"
EVENT_COMMENT = "comment"

ACTION_OPENED = "opened"
ACTION_SYNCHRONIZE = "synchronize"
ACTION_REOPENED = "reopened"
ACTION_CREATED = "created"
ACTION_EDITED = "edited"

# legacy event names and the scoped events they stand for
LEGACY_EVENT_EXPANSIONS = {
    EVENT_PULL: [
        f"{EVENT_PULL}:{ACTION_OPENED}",
        f"{EVENT_PULL}:{ACTION_SYNCHRONIZE}",
        f"{EVENT_PULL}:{ACTION_REOPENED}",
    ],
    EVENT_DEPLOY: [
        f"{EVENT_DEPLOY}:{ACTION_CREATED}",
    ],
    EVENT_COMMENT: [
        f"{EVENT_COMMENT}:{ACTION_CREATED}",
        f"{EVENT_COMMENT}:{ACTION_EDITED}",
    ],
}

# ============================================================
# SECRETS
# ============================================================

DRIVER_NATIVE = "native"
SECRET_REPO = "repo"
SECRET_PULL_BUILD = "build_start"

# ============================================================
# STAGES / METADATA
# ============================================================

STAGE_CLONE = "clone"
STAGE_INIT = "init"

# stages that never receive an implicit dependency on clone
IMPLICIT_NEEDS_EXEMPT = {STAGE_CLONE, STAGE_INIT}

DEFAULT_METADATA_ENVIRONMENT = ["steps", "services", "secrets"]

# ============================================================
# PLATFORM VARIABLES
# ============================================================

PLATFORM_PREFIX = "vela_"
DEPLOYMENT_PREFIX = "deployment_parameter_"

NAMESPACE_BUILD = "build"
NAMESPACE_REPO = "repo"
NAMESPACE_USER = "user"
NAMESPACE_SYSTEM = "system"
NAMESPACE_DEPLOYMENT = "deployment"

TEMPLATE_NAME_KEY = "template_name"

# ============================================================
# RENDERING
# ============================================================

DEFAULT_STEP_LIMIT = 5000
DEFAULT_PIPELINE_VERSION = "1"
FULL_PIPELINE_TEMPLATE_NAME = "templated-base"

# native templates: upper bound on the size of an integer power
NATIVE_MAX_POWER_BITS = 4096
