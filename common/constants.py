DEFAULT_ENV = "production"
DEFAULT_REGION = "ap-southeast-2"
DEFAULT_BRANCH = "main"
DEFAULT_REPOSITORY = "your-username/nextjs-dashboard"

# Naming convention components
SERVICE_NAME = "nextjs-dashboard"  # The application name
PROJECT_TAG = "NextJS-Dashboard"

# Resource group kinds understood by the providers
KIND_NETWORK = "network"
KIND_SECRET_STORE = "secret_store"
KIND_DATABASE = "database"
KIND_HOSTING = "hosting"
GROUP_KINDS = (KIND_NETWORK, KIND_SECRET_STORE, KIND_DATABASE, KIND_HOSTING)

# Resource group names, in declaration order
NETWORK_GROUP = "Network"
SECRETS_GROUP = "Secrets"
DATABASE_GROUP = "Database"
HOSTING_GROUP = "Hosting"

# Preconditions an optional group can wait on
SOURCE_CREDENTIAL = "source_credential"

ENVIRONMENT_TAG_KEY = "Environment"
DEFAULT_TAGS = (
    ("ManagedBy", "AWS-CDK"),
    ("Project", PROJECT_TAG),
    (ENVIRONMENT_TAG_KEY, "Production"),
)
MAX_TAG_KEY_LENGTH = 128
MAX_TAG_VALUE_LENGTH = 256
RESERVED_TAG_PREFIX = "aws:"

VPC_CIDR = "10.0.0.0/16"
CIDR_MASK = 24
MAX_AZS = 2
POSTGRES_PORT = 5432

DB_USERNAME = "dashboard_admin"
DB_NAME = "dashboard_db"
DB_ENGINE_VERSION = "16.6"
DB_ENGINE_MAJOR_VERSION = "16"
DB_ALLOCATED_STORAGE_GB = 20
DB_BACKUP_RETENTION_DAYS = 7
DB_MONITORING_INTERVAL_SECONDS = 60
DB_CREDENTIALS_SECRET_NAME = f"{SERVICE_NAME}/db-credentials"
AUTH_SECRET_NAME = f"{SERVICE_NAME}/auth-secret"
SOURCE_TOKEN_SECRET_NAME = f"{SERVICE_NAME}/github-token"
SECRET_EXCLUDE_CHARACTERS = "\"@/\\'"
AUTH_SECRET_LENGTH = 32

HOSTING_APP_NAME = SERVICE_NAME
HOSTING_PLATFORM = "WEB_COMPUTE"
HOSTING_STAGE = "PRODUCTION"
HOSTING_SUBDOMAIN = "dashboard"
AUTH_PATH = "/api/auth"

CONNECTION_SCHEME = "postgresql"
CONNECTION_TEMPLATE = "{scheme}://{user}:{password}@{host}:{port}/{name}"
DEFERRED_MARKER = "{{{{resolve:secretsmanager:{locator}}}}}"
DEFERRED_MARKER_WITH_KEY = "{{{{resolve:secretsmanager:{locator}:SecretString:{json_key}}}}}"

LOG_SERVICE = "dashboard-infra"
DEFAULT_LOG_LEVEL = "INFO"
