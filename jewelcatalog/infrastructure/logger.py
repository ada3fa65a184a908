import logging
import logging.handlers
import os
from datetime import datetime, timedelta
from pathlib import Path

from jewelcatalog.infrastructure.app_constants import LOG_DIR
from jewelcatalog.infrastructure.settings import get_app_settings


def setup_logging(app_name="jewel_catalog", log_dir=LOG_DIR, debug_mode=False,
                  enable_info=True, enable_error=True, enable_debug=True):
    """
    Configure the logging system for the catalog data layer.

    Args:
        app_name (str): Base name for log files
        log_dir (str): Directory to store log files
        debug_mode (bool): Whether to enable debug logging
        enable_info (bool): Whether to enable INFO level logs
        enable_error (bool): Whether to enable ERROR and CRITICAL level logs
        enable_debug (bool): Whether to enable DEBUG level logs (only when debug_mode is True)

    Returns:
        logging.Logger: Configured root logger
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_format = logging.Formatter(
        '%(asctime)s [%(levelname)s] [%(threadName)s] [%(module)s:%(lineno)d] %(message)s'
    )

    if enable_info:
        main_handler = logging.handlers.RotatingFileHandler(
            log_path / f"{app_name}.log",
            maxBytes=5*1024*1024,  # 5MB
            backupCount=10,
            encoding='utf-8'
        )
        main_handler.setLevel(logging.INFO)
        main_handler.setFormatter(log_format)
        root_logger.addHandler(main_handler)

    if enable_error:
        error_handler = logging.handlers.RotatingFileHandler(
            log_path / f"{app_name}_error.log",
            maxBytes=5*1024*1024,  # 5MB
            backupCount=10,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(log_format)
        root_logger.addHandler(error_handler)

    if debug_mode and enable_debug:
        debug_handler = logging.handlers.RotatingFileHandler(
            log_path / f"{app_name}_debug.log",
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(log_format)
        root_logger.addHandler(debug_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if debug_mode else logging.WARNING)
    console_handler.setFormatter(log_format)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialized at %s", datetime.now().isoformat())
    if debug_mode:
        root_logger.info("Debug logging enabled")

    return root_logger


def cleanup_old_logs(log_dir=LOG_DIR, max_age_days=1):
    """
    Remove rotated log files older than max_age_days.

    Returns:
        int: Number of files removed
    """
    logger = logging.getLogger(__name__)

    if max_age_days < 1:
        logger.warning("Invalid max_age_days value (%s), using default of 1 day", max_age_days)
        max_age_days = 1

    log_path = Path(log_dir)
    if not log_path.exists():
        logger.debug("Log directory %s does not exist, nothing to clean up", log_dir)
        return 0

    cutoff = datetime.now() - timedelta(days=max_age_days)
    removed_count = 0
    for file_path in log_path.glob("*.log*"):
        if not file_path.is_file():
            continue
        if datetime.fromtimestamp(file_path.stat().st_mtime) >= cutoff:
            continue
        try:
            file_path.unlink()
            removed_count += 1
            logger.debug("Removed old log file: %s", file_path)
        except OSError as e:
            logger.warning("Failed to remove old log file %s: %s", file_path, e)

    logger.info("Log cleanup completed: removed %s files older than %s days", removed_count, max_age_days)
    return removed_count


def get_log_config(settings_provider=None):
    """
    Get logging configuration from environment variables or settings.

    Returns:
        dict: Dictionary containing all logging configuration settings
    """
    settings = (settings_provider or get_app_settings)()

    # Environment variables take precedence
    debug_mode = os.environ.get('JEWEL_CATALOG_DEBUG', '').lower() in ('true', '1', 'yes')
    if 'JEWEL_CATALOG_DEBUG' not in os.environ:
        debug_mode = settings.value("logging/debug_mode", False, type=bool)

    log_dir = os.environ.get('JEWEL_CATALOG_LOG_DIR', LOG_DIR)

    enable_info = settings.value("logging/enable_info", True, type=bool)
    enable_error = settings.value("logging/enable_error", True, type=bool)
    enable_debug = settings.value("logging/enable_debug", True, type=bool)

    auto_cleanup = settings.value("logging/auto_cleanup", False, type=bool)
    try:
        cleanup_days = int(settings.value("logging/cleanup_days", 1))
    except (TypeError, ValueError):
        cleanup_days = 1
    cleanup_days = max(1, min(cleanup_days, 365))

    return {
        'debug_mode': debug_mode,
        'log_dir': log_dir,
        'enable_info': enable_info,
        'enable_error': enable_error,
        'enable_debug': enable_debug,
        'auto_cleanup': auto_cleanup,
        'cleanup_days': cleanup_days
    }
