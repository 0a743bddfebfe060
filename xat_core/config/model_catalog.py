"""模型配置目录。

配置文档按 Provider 分两段，每段以模型 ID 为键，值为非空列表（取第一项）::

    AzureOpenAi:
      gpt-4o:
        - ApiUrl: https://example.openai.azure.com
          ApiKey: ...
          ModelName: gpt-4o
    ClaudeAi:
      claude-3:
        - ApiUrl: https://api.anthropic.com
          ApiKey: ...
          ModelName: claude-3-5-sonnet-latest

本模块只读取配置，不负责写回。
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from xat_core.domain.exceptions import ConfigError
from xat_core.domain.models import ModelConfiguration, ProviderKind


SECTIONS: Dict[str, ProviderKind] = {
    "AzureOpenAi": "azure",
    "ClaudeAi": "claude",
}
REQUIRED_FIELDS = ("ApiUrl", "ApiKey", "ModelName")


def validate_config(config: Any) -> List[str]:
    """返回配置文档中的问题列表，空列表表示有效。"""

    if not isinstance(config, Mapping):
        return ["config must be a mapping"]
    problems: List[str] = []
    if not any(section in config for section in SECTIONS):
        problems.append("at least one of AzureOpenAi / ClaudeAi is required")
    for section in SECTIONS:
        models = config.get(section)
        if models is None:
            continue
        if not isinstance(models, Mapping):
            problems.append(f"{section} must be a mapping of model id to entries")
            continue
        for model_id, entries in models.items():
            if not isinstance(entries, list) or not entries:
                problems.append(f"{section}.{model_id} must be a non-empty list")
                continue
            entry = entries[0]
            if not isinstance(entry, Mapping):
                problems.append(f"{section}.{model_id}[0] must be a mapping")
                continue
            for key in REQUIRED_FIELDS:
                if not entry.get(key):
                    problems.append(f"{section}.{model_id}[0].{key} is required")
    return problems


def _to_configuration(kind: ProviderKind, model_id: str, entry: Mapping[str, Any]) -> ModelConfiguration:
    def _num(key: str, default: float) -> float:
        value = entry.get(key)
        return default if value is None else float(value)

    return ModelConfiguration(
        kind=kind,
        model_id=str(model_id),
        api_url=str(entry["ApiUrl"]),
        api_key=str(entry["ApiKey"]),
        model_name=str(entry["ModelName"]),
        max_tokens=int(entry.get("MaxTokens") or 1000),
        temperature=_num("Temperature", 0.7),
        top_p=_num("NucleusSamplingFactor", 1.0),
        presence_penalty=_num("PresencePenalty", 0.0),
        frequency_penalty=_num("FrequencyPenalty", 0.0),
        api_version=entry.get("ApiVersion") or None,
    )


class ModelCatalog:
    """已解析的模型集合，按模型 ID 查询。"""

    def __init__(self, models: Mapping[str, ModelConfiguration]):
        self._models: Dict[str, ModelConfiguration] = dict(models)

    @classmethod
    def from_dict(cls, config: Any) -> "ModelCatalog":
        problems = validate_config(config)
        if problems:
            raise ConfigError(
                code="INVALID_MODEL_CONFIG",
                message="Invalid config structure: " + "; ".join(problems),
                problems=problems,
            )
        models: Dict[str, ModelConfiguration] = {}
        for section, kind in SECTIONS.items():
            for model_id, entries in (config.get(section) or {}).items():
                models[str(model_id)] = _to_configuration(kind, model_id, entries[0])
        return cls(models)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ModelCatalog":
        """读取 YAML 或 JSON 配置文档（JSON 是 YAML 的子集）。"""

        p = Path(path).expanduser()
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(code="MODEL_CONFIG_UNREADABLE", message=f"Failed to read {p}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(code="INVALID_MODEL_CONFIG", message=f"Failed to parse {p}: {exc}") from exc
        return cls.from_dict(data)

    def available_models(self) -> List[str]:
        return list(self._models)

    def get(self, model_id: Optional[str] = None) -> ModelConfiguration:
        """按 ID 取模型配置；model_id 为空时返回第一个模型。"""

        if model_id is None:
            if not self._models:
                raise ConfigError(code="NO_MODELS", message="No models configured")
            return next(iter(self._models.values()))
        try:
            return self._models[model_id]
        except KeyError:
            raise ConfigError(
                code="UNKNOWN_MODEL",
                message=f"Selected model not found in configuration: {model_id!r}",
            ) from None

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)
