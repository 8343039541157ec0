"""Logging utilities for the checkout core"""

import logging
import sys
import json
import os
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger instance
    
    Args:
        name: Logger name (usually __name__)
        level: Optional log level override
        
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    
    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
        logger.setLevel(log_level)
    
    return logger


def setup_logging(debug: bool = False):
    """
    Setup logging for the host process
    
    All log output goes to stderr so it never mixes with anything the host
    writes to stdout.
    
    Args:
        debug: Enable debug logging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    log_level = log_level_map.get(log_level_str, logging.INFO)
    
    if debug:
        log_level = logging.DEBUG
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(log_level)
    
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)
    
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    
    return root_logger


class PaymentAuditLogger:
    """Structured JSON logging of payment state transitions"""
    
    def __init__(self, logger_name: str = 'payment_audit'):
        self.logger = logging.getLogger(logger_name)
        self.max_reason_size = int(os.getenv('PAYMENT_AUDIT_MAX_REASON', '500'))
    
    def log_transition(self, attempt_id: str, method: Optional[str], from_state: str,
                       to_state: str, reason: Optional[str] = None,
                       extra: Optional[Dict[str, Any]] = None):
        """Log one state machine transition"""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "payment_transition",
            "attempt_id": attempt_id,
            "method": method,
            "from": from_state,
            "to": to_state,
        }
        if reason:
            log_entry["reason"] = reason[:self.max_reason_size]
        if extra:
            log_entry["extra"] = extra
        
        self.logger.info(f"[TRANSITION] {json.dumps(log_entry, separators=(',', ':'), default=str)}")
    
    def log_order_event(self, event: str, data: Dict[str, Any]):
        """Log order submission lifecycle events"""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event,
            **data
        }
        self.logger.info(f"[ORDER] {json.dumps(log_entry, separators=(',', ':'), default=str)}")


_payment_audit_logger = None

def get_payment_audit_logger() -> PaymentAuditLogger:
    """Get global payment audit logger instance"""
    global _payment_audit_logger
    if _payment_audit_logger is None:
        _payment_audit_logger = PaymentAuditLogger()
    return _payment_audit_logger
