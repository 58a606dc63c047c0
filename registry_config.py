import os
import sys
import logging
from dotenv import load_dotenv

# -----------------------
# CONFIG
# -----------------------
load_dotenv()

STORAGE_PATH = os.environ.get("REGISTRY_STORAGE_PATH", "local_storage.json")
# browsers cap localStorage at roughly 5MB per origin
STORAGE_QUOTA_BYTES = int(os.environ.get("REGISTRY_STORAGE_QUOTA", 5 * 1024 * 1024))
SNAPSHOT_WARN_BYTES = int(os.environ.get("REGISTRY_SNAPSHOT_WARN", 4 * 1024 * 1024))
SNAPSHOT_KEY = os.environ.get("REGISTRY_SNAPSHOT_KEY", "sqlite_db_backup")
EXPORT_FILENAME = os.environ.get("REGISTRY_EXPORT_FILENAME", "employees.sqlite")
RUNTIME_WAIT_SECONDS = float(os.environ.get("REGISTRY_RUNTIME_WAIT", "0.5"))
WRITE_THROUGH = os.environ.get("REGISTRY_WRITE_THROUGH", "1").strip().lower() not in ("0", "false", "no", "off")

LOG_PATH = os.environ.get("REGISTRY_LOG_PATH", "registry.log")
LOG_LEVEL = os.environ.get("REGISTRY_LOG_LEVEL", "INFO").upper()

REPORT_HEADER_KEY = "report_header"


# -----------------------
# LOGGING
# -----------------------
def setup_logging(level: str = LOG_LEVEL, log_path: str = LOG_PATH):
    """File log plus a console handler on stdout. Safe to call more than once."""
    root = logging.getLogger()
    if getattr(root, "_registry_configured", False):
        return
    logging.basicConfig(
        filename=log_path,
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(getattr(logging, level, logging.INFO))
    console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    root.addHandler(console)
    root._registry_configured = True
