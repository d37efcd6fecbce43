from importlib import import_module

modules = [
    'daily_backups',
    'daily_backup_config',
    'notifications',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
