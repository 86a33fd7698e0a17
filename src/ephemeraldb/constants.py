MYSQL_IMAGE = "mysql:8"
MYSQL_PORT = "3306/tcp"
MYSQL_DATA_DIR = "/var/lib/mysql"
MYSQL_ERROR_LOG = "/var/lib/mysql/error.log"

DEFAULT_DATABASE = "defaultdb"
DEFAULT_USERNAME = "root"
DEFAULT_PASSWORD = "secret"
DEFAULT_HOST = "localhost"
CONTAINER_NAME_PREFIX = "mysql"

READY_TIMEOUT_SECONDS = 120.0
PROBE_CONNECT_TIMEOUT_SECONDS = 5
STOP_TIMEOUT_SECONDS = 5

CONFIG_FILE_NAME = ".ephemeraldb.yml"
CONFIG_ENV_VAR = "EPHEMERALDB_CONFIG"

VERSION_TABLE = "goose_db_version"
