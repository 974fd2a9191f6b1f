import logging
from typing import Mapping

from siater_api.type_defs import is_json_object, JsonObject, JsonValue

logger = logging.getLogger(__name__)

_COERCIBLE_TYPES = (bool, int, float, str)


class Serializable:
    def _annotations(self) -> dict[str, object]:
        annotations: dict[str, object] = {}
        for cls in reversed(type(self).mro()):
            cls_annotations = getattr(cls, "__annotations__", None)
            if isinstance(cls_annotations, dict):
                annotations.update(cls_annotations)
        return annotations

    def to_dict(self) -> JsonObject:
        result: JsonObject = {}
        for key in self.get_all_keys():
            if key.startswith("_"):
                continue
            value = getattr(self, key, None)
            if isinstance(value, Serializable):
                result[key] = value.to_dict()
            elif value is not None:
                # toml has no null; unset values are simply left out of the file.
                result[key] = value
        return result

    def from_dict(self, data: Mapping[str, JsonValue]) -> None:
        for key, type_hint in self._annotations().items():
            if key.startswith("_"):
                continue
            value = data.get(key, getattr(self, key, None))

            try:
                existing_attr = getattr(self, key)
            except AttributeError:
                logger.warning(f"{key} not in {self.__class__.__name__}. Skipping...")
                continue

            if isinstance(existing_attr, Serializable):
                if not is_json_object(value):
                    logger.warning(
                        f"Expected dict for {key} in {self.__class__.__name__}, got {type(value)}. Skipping..."
                    )
                    continue
                existing_attr.from_dict(value)
            else:
                setattr(self, key, self._coerce(key, value, type_hint))

        for key in data:
            if key not in self._annotations():
                logger.warning(f"Unknown configuration key '{key}' in {self.__class__.__name__}. Skipping...")

        self.validate()

    def _coerce(self, key: str, value: JsonValue, type_hint: object) -> JsonValue:
        if value is None or type_hint not in _COERCIBLE_TYPES or isinstance(value, type_hint):
            return value
        try:
            if type_hint is bool:
                if isinstance(value, str):
                    return value.strip().lower() in {"1", "true", "yes", "on"}
                return bool(value)
            return type_hint(value)
        except (TypeError, ValueError):
            logger.warning(
                f"Configuration value '{key}' in {self.__class__.__name__} is not a valid {type_hint.__name__}: {value!r}"
            )
            return getattr(self, key, None)

    def validate(self) -> None:
        for key in self._annotations():
            if getattr(self, key, None) is None:
                logger.warning(
                    f"Warning: Configuration value '{key}' is missing or None in {self.__class__.__name__}"
                )

    def get_all_keys(self) -> set[str]:
        instance_keys = set(self.__dict__.keys())
        annotation_keys = set(self._annotations().keys())
        return instance_keys | annotation_keys

    def gather_missing_data(self, parent_name: str = "") -> None:
        for key in self.get_all_keys():
            if key.startswith("_"):
                continue
            value = getattr(self, key, None)
            full_key_name = f"{parent_name}.{key}" if parent_name else key
            if value == "from_terminal":
                new_value = input(
                    f"{full_key_name} not in configuration. Please enter a value: "
                )
                setattr(self, key, new_value)
            elif isinstance(value, Serializable):
                value.gather_missing_data(full_key_name)
