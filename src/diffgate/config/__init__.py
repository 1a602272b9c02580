from diffgate.config.settings import ApprovalConfig, LoggingConfig, MailboxConfig, Settings, load_settings

__all__ = ["ApprovalConfig", "LoggingConfig", "MailboxConfig", "Settings", "load_settings"]
