from .dispatcher import AlertDispatcher, HttpAlertDispatcher, LogAlertDispatcher, build_alert_message

__all__ = ["AlertDispatcher", "HttpAlertDispatcher", "LogAlertDispatcher", "build_alert_message"]
