DATA_DIR_NAME = ".draken"
DATABASE_FILE = "draken.db"
CONFIG_FILE = "config.yaml"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 40333
DEFAULT_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7
DEFAULT_CONCURRENCY = 4
DEFAULT_STOP_GRACE_SECONDS = 5.0

TEMPLATE_FILE_NAME = "Dockerfile.draken"
IMAGE_PREFIX = "draken-project-"
CONTAINER_NAME_PREFIX = "draken-task-"
PROCESS_REF_PREFIX = "pid-"
SESSIONS_DIR_NAME = ".draken-sessions"
CONTAINER_WORKSPACE = "/workspace"
CONTAINER_AGENT_HOME = "/home/claude/.claude"
AGENT_CREDENTIALS_FILE = ".credentials.json"
API_KEY_ENV = "ANTHROPIC_API_KEY"

STOPPED_BY_USER_MARKER = "\n[Task stopped by user]\n"
INTERRUPTED_BY_RESTART_MARKER = "\n[Task interrupted by server restart]\n"
INTERRUPTED_BY_SHUTDOWN_MARKER = "\n[Task interrupted: server shutting down]\n"
