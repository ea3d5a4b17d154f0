from pathlib import Path
from typing import Dict, Any, Optional, List, Callable
import logging
import os

from pagepilot.config.types import SettingDescriptor


class EnvironmentManager:
    """
    Environment manager holding the typed settings used to build sessions
    and surfaces. Values come from defaults, a .env file and the process
    environment, in increasing order of precedence.
    """

    _instance = None

    ENV_PREFIX = "PAGEPILOT_"

    # List of all settings that are paths
    PATH_SETTINGS = [
        "browser_profile_path",
        "capture_dir",
    ]

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Surface settings
        "surface_type": ("playwright", str),
        "browser_type": (None, str),
        "headless": (True, bool),
        "browser_profile_path": (None, str),
        "user_agent": (None, str),
        "capture_dir": (".captures", str),
        # Session settings
        "fault_tolerant": (True, bool),
        "log_level": ("error", str),
        "verbose": (False, bool),
        "timeout_ms": (0, int),
        "wait_timeout_ms": (5000, int),
        "wait_poll_interval_ms": (100, int),
        "step_poll_interval_ms": (250, int),
    }

    # Prefixed uppercase env var -> setting name, filled in below the class
    ENV_MAPPING: Dict[str, str] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.env_variables: Dict[str, str] = {}
        self._providers: List[Callable[[], Dict[str, Any]]] = []
        self.settings: Dict[str, Any] = {}
        self.env_file: Optional[Path] = None
        self.logger = logging.getLogger(__name__)

        for key, (default_value, _) in self.DEFAULT_SETTINGS.items():
            self.settings[key] = default_value

        self._load_from_env_file()
        self._resolve_paths()

    def _resolve_paths(self):
        """Resolve path settings to absolute paths relative to the working directory"""
        for key in self.PATH_SETTINGS:
            value = self.settings.get(key)
            if value is not None:
                p = Path(value)
                if not p.is_absolute():
                    p = Path.cwd() / p
                self.settings[key] = str(p.resolve())

    def _get_git_root(self) -> Optional[Path]:
        """Closest enclosing directory holding a .git folder, searched 10 levels up"""
        cwd = Path.cwd()
        for candidate in [cwd, *cwd.parents][:10]:
            if (candidate / ".git").is_dir():
                return candidate
        return None

    def _convert_value(self, value: str, target_type: type) -> Any:
        """Convert string value to target type"""
        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")
        return target_type(value)

    def _apply_variable(self, key: str, value: str) -> None:
        """Store a variable and update the mapped setting, if any"""
        self.env_variables[key] = value
        setting_name = self.ENV_MAPPING.get(key)
        if setting_name is None:
            return
        _, target_type = self.DEFAULT_SETTINGS[setting_name]
        try:
            self.settings[setting_name] = self._convert_value(value, target_type)
        except ValueError as e:
            self.logger.warning(f"Ignoring invalid value for {key}: {e}")

    def _candidate_env_files(self) -> List[Path]:
        env_file_paths = [Path.cwd() / ".env"]

        git_root = self._get_git_root()
        if git_root:
            env_file_paths.append(git_root / ".env")

        # Safely handle the home directory
        try:
            env_file_paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            pass
        return env_file_paths

    def _load_from_env_file(self):
        """Find and load variables from the first .env file found"""
        for env_path in self._candidate_env_files():
            if env_path.exists() and env_path.is_file():
                self.logger.debug(f"Loading environment from: {env_path}")
                self._parse_env_file(env_path)
                self.env_file = env_path
                return
        self.logger.debug("No .env file found; using default settings")

    @staticmethod
    def _unquote(value: str) -> str:
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            return value[1:-1]
        return value

    def _parse_env_file(self, env_file_path: Path):
        """Apply the KEY=VALUE lines of a .env file; comments and blank lines are skipped"""
        try:
            lines = env_file_path.read_text().splitlines()
        except OSError as e:
            self.logger.error(f"Error parsing .env file {env_file_path}: {e}")
            return
        for raw in lines:
            line = raw.strip()
            if line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            self._apply_variable(key.strip(), self._unquote(value.strip()))

    def register_provider(self, provider: Callable[[], Dict[str, Any]]):
        """Register a provider function that returns additional settings"""
        self._providers.append(provider)
        return self

    def load(self):
        """Load all environment information"""
        self._load_from_env_file()

        for key, value in os.environ.items():
            if key.startswith(self.ENV_PREFIX):
                self._apply_variable(key, value)

        for provider in self._providers:
            try:
                settings = provider().get("settings", {})
            except Exception as e:
                self.logger.error(f"Error from provider: {e}")
                continue
            for key, value in settings.items():
                if key in self.settings:
                    self.settings[key] = value

        self._resolve_paths()
        return self

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value by name"""
        value = self.settings.get(name)
        return default if value is None else value

    def get_all_configuration(self) -> Dict[str, Any]:
        """Get all settings together with their defaults and types"""
        default_settings = {
            key: SettingDescriptor(
                name=key,
                default_value=default_value,
                type=type_class.__name__,
                env_var=f"{self.ENV_PREFIX}{key.upper()}",
            ).model_dump()
            for key, (default_value, type_class) in self.DEFAULT_SETTINGS.items()
        }
        return {
            "settings": dict(self.settings),
            "default_settings": default_settings,
            "path_settings": list(self.PATH_SETTINGS),
            "env_file": str(self.env_file) if self.env_file else None,
        }

    def update_configuration(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Update settings and return result"""
        updated_settings = []
        errors = []
        for key, value in updates.items():
            if key not in self.DEFAULT_SETTINGS:
                errors.append(f"Unknown setting: {key}")
                continue
            _, target_type = self.DEFAULT_SETTINGS[key]
            if isinstance(value, str) and target_type is not str:
                try:
                    value = self._convert_value(value, target_type) if value else None
                except ValueError as e:
                    errors.append(f"Invalid value for {key}: {e}")
                    continue
            self.settings[key] = value
            updated_settings.append(key)

        return {
            "success": not errors,
            "updated_settings": updated_settings,
            "errors": errors,
            "message": f"Updated {len(updated_settings)} settings",
        }

    def reset_setting(self, setting_name: str) -> Dict[str, Any]:
        """Reset a specific setting to its default value"""
        if setting_name not in self.DEFAULT_SETTINGS:
            return {"success": False, "error": f"Unknown setting: {setting_name}"}
        default_value, _ = self.DEFAULT_SETTINGS[setting_name]
        self.settings[setting_name] = default_value
        return {"success": True, "message": f"Reset {setting_name} to default value: {default_value}"}


# Each setting can be set via its prefixed uppercase env var
EnvironmentManager.ENV_MAPPING = {
    f"{EnvironmentManager.ENV_PREFIX}{setting.upper()}": setting
    for setting in EnvironmentManager.DEFAULT_SETTINGS
}

# Create a global instance
env_manager = EnvironmentManager()
