"""
Configuration management and loading.

Handles application settings from an optional YAML file and environment
variables.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from academic_workflow.core.errors import ConfigError
from academic_workflow.core.pricing import PRICING_TABLE, ProviderPricing, TaskType, TokenRate
from academic_workflow.storage.db import DEFAULT_DB_PATH

SUPPORTED_PROVIDERS = ("anthropic", "openai")

API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass(frozen=True)
class BudgetConfig:
    """Monthly spending ceiling."""
    monthly: float = 100.0

    def __post_init__(self):
        """Validate budget value is positive."""
        if self.monthly <= 0:
            raise ConfigError("monthly budget must be > 0")


@dataclass(frozen=True)
class RouterConfig:
    cooldown_seconds: float = 60.0
    timeout_seconds: float = 60.0

    def __post_init__(self):
        if self.cooldown_seconds < 0:
            raise ConfigError("cooldown_seconds cannot be negative")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class ProviderConfig:
    """Model and pricing for one provider."""
    pricing: ProviderPricing
    model: Optional[str] = None


@dataclass(frozen=True)
class ZoteroConfig:
    api_key: Optional[str] = None
    user_id: Optional[str] = None
    library_type: str = "user"
    collection_key: Optional[str] = None

    def __post_init__(self):
        if self.library_type not in ("user", "group"):
            raise ConfigError("zotero.library_type must be 'user' or 'group'")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.user_id)


@dataclass(frozen=True)
class Settings:
    """Complete application settings."""
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    api_keys: Dict[str, str] = field(default_factory=dict)
    zotero: ZoteroConfig = field(default_factory=ZoteroConfig)
    db_path: str = DEFAULT_DB_PATH

    def provider_config(self, name: str) -> ProviderConfig:
        """Get configuration for a provider, falling back to built-in pricing."""
        if name in self.providers:
            return self.providers[name]
        return ProviderConfig(pricing=PRICING_TABLE.get_pricing(name))

    @property
    def configured_providers(self):
        """Providers that have an API key, in preference order."""
        return [name for name in SUPPORTED_PROVIDERS if self.api_keys.get(name)]


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Load and validate settings from YAML and environment.

    The YAML file is optional; environment variables supply credentials and
    override the monthly budget.

    Args:
        path: Optional path to YAML configuration file
        env: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If a config path is given but doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigError: If configuration is invalid
    """
    env = os.environ if env is None else env
    raw_config: Dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

        if not isinstance(raw_config, dict):
            raise ConfigError("Configuration must be a mapping")

    # Validate top-level structure
    allowed_top_keys = {'budget', 'router', 'providers', 'zotero', 'storage'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ConfigError(f"Unknown configuration keys: {unknown_keys}")

    budget_data = _section(raw_config, 'budget', {'monthly'})
    monthly = budget_data.get('monthly', BudgetConfig.monthly)
    if env.get('AI_MONTHLY_BUDGET'):
        monthly = env['AI_MONTHLY_BUDGET']
    budget = BudgetConfig(monthly=_positive_number(monthly, 'budget.monthly'))

    router_data = _section(raw_config, 'router', {'cooldown_seconds', 'timeout_seconds'})
    router = RouterConfig(
        cooldown_seconds=_number(router_data.get('cooldown_seconds', RouterConfig.cooldown_seconds),
                                 'router.cooldown_seconds'),
        timeout_seconds=_positive_number(router_data.get('timeout_seconds', RouterConfig.timeout_seconds),
                                         'router.timeout_seconds')
    )

    providers_data = raw_config.get('providers') or {}
    if not isinstance(providers_data, dict):
        raise ConfigError("'providers' must be a dictionary")
    providers = {}
    for name, provider_data in providers_data.items():
        if name not in SUPPORTED_PROVIDERS:
            raise ConfigError(f"Unsupported provider: {name}")
        if not isinstance(provider_data, dict):
            raise ConfigError(f"Provider '{name}' must be a dictionary")
        providers[name] = _parse_provider_config(name, provider_data)

    zotero_data = _section(raw_config, 'zotero', {'library_type', 'collection_key'})
    zotero = ZoteroConfig(
        api_key=env.get('ZOTERO_API_KEY') or None,
        user_id=env.get('ZOTERO_USER_ID') or None,
        library_type=str(zotero_data.get('library_type', 'user')),
        collection_key=zotero_data.get('collection_key')
    )

    storage_data = _section(raw_config, 'storage', {'db_path'})
    db_path = env.get('ACADEMIC_WORKFLOW_DB') or storage_data.get('db_path') or DEFAULT_DB_PATH

    api_keys = {
        name: env[var].strip()
        for name, var in API_KEY_ENV.items()
        if env.get(var) and env[var].strip()
    }

    return Settings(
        budget=budget,
        router=router,
        providers=providers,
        api_keys=api_keys,
        zotero=zotero,
        db_path=str(db_path)
    )


def _section(raw_config: Dict[str, Any], name: str, allowed_keys: set) -> Dict[str, Any]:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"'{path}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{path}' must be a number")


def _positive_number(value: Any, path: str) -> float:
    number = _number(value, path)
    if number <= 0:
        raise ConfigError(f"'{path}' must be > 0")
    return number


def _rate(value: Any, path: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigError(f"'{path}' must be a number")
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ConfigError(f"'{path}' must be a number")
    if rate < 0:
        raise ConfigError(f"'{path}' cannot be negative")
    return rate


def _parse_token_rate(data: Dict[str, Any], path: str, fallback: TokenRate) -> TokenRate:
    allowed_keys = {'input_cost_per_1k', 'output_cost_per_1k'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown keys in {path}: {unknown_keys}")
    return TokenRate(
        input_cost_per_1k=_rate(data.get('input_cost_per_1k', fallback.input_cost_per_1k),
                                f"{path}.input_cost_per_1k"),
        output_cost_per_1k=_rate(data.get('output_cost_per_1k', fallback.output_cost_per_1k),
                                 f"{path}.output_cost_per_1k")
    )


def _parse_provider_config(name: str, data: Dict[str, Any]) -> ProviderConfig:
    """Parse and validate one provider section.

    Rates missing from the section fall back to the built-in table.

    Raises:
        ConfigError: If configuration is invalid
    """
    path = f"providers.{name}"
    allowed_keys = {'model', 'input_cost_per_1k', 'output_cost_per_1k', 'tasks'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ConfigError(f"Unknown keys in {path}: {unknown_keys}")

    builtin = PRICING_TABLE.get_pricing(name)
    rate_data = {k: v for k, v in data.items() if k in ('input_cost_per_1k', 'output_cost_per_1k')}
    default = _parse_token_rate(rate_data, path, builtin.default)

    tasks_data = data.get('tasks') or {}
    if not isinstance(tasks_data, dict):
        raise ConfigError(f"'{path}.tasks' must be a dictionary")
    tasks = {}
    for task_name, task_data in tasks_data.items():
        try:
            task_type = TaskType(str(task_name).lower())
        except ValueError:
            valid_tasks = [task.value for task in TaskType]
            raise ConfigError(f"Unknown task '{task_name}' in {path}.tasks; must be one of: {valid_tasks}")
        if not isinstance(task_data, dict):
            raise ConfigError(f"'{path}.tasks.{task_name}' must be a dictionary")
        tasks[task_type] = _parse_token_rate(task_data, f"{path}.tasks.{task_name}", default)

    model = data.get('model')
    if model is not None and not isinstance(model, str):
        raise ConfigError(f"'{path}.model' must be a string")

    return ProviderConfig(
        pricing=ProviderPricing(default=default, tasks=tasks),
        model=model
    )
