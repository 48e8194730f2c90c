"""Localized alert text from per-locale YAML bundles."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from coastguard.core.types import Band
from coastguard.scoring.primitives import format_message, sms_message

_DEFAULT_BUNDLES_DIR = Path(__file__).resolve().parent / "bundles"


def _flatten(tree: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """``{"alerts": {"stay_safe": "..."}}`` -> ``{"alerts.stay_safe": "..."}``."""
    flat: dict[str, str] = {}
    for name, value in tree.items():
        key = f"{prefix}{name}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{key}."))
        elif value is not None:
            flat[key] = str(value)
    return flat


class I18nEngine:
    """Catalog of translated strings keyed by dotted path, one YAML file per locale.

    A locale is named after its file stem (``hi.yml`` -> ``hi``). Lookups
    that miss in the requested locale are retried in ``default_locale``, so a
    user with an unsupported language still gets English text.
    """

    def __init__(
        self,
        bundles_dir: str | Path | None = None,
        default_locale: str = "en",
    ) -> None:
        self._default_locale = default_locale
        self._catalogs: dict[str, dict[str, str]] = {}
        directory = Path(bundles_dir) if bundles_dir else _DEFAULT_BUNDLES_DIR
        if directory.is_dir():
            for path in sorted(directory.glob("*.yml")):
                with path.open(encoding="utf-8") as fh:
                    self._catalogs[path.stem] = _flatten(yaml.safe_load(fh) or {})

    @property
    def locales(self) -> list[str]:
        return sorted(self._catalogs)

    @property
    def default_locale(self) -> str:
        return self._default_locale

    def resolve_locale(self, locale: str | None) -> str:
        """The user's locale when we ship a bundle for it, else the default."""
        return locale if locale in self._catalogs else self._default_locale

    def t(self, key: str, locale: str | None = None, **kwargs: Any) -> str:
        """Look up ``key`` and fill ``{placeholders}`` from ``kwargs``.

        A key missing everywhere renders as itself. Placeholders with no
        matching keyword stay verbatim.
        """
        text = self._catalogs.get(locale or self._default_locale, {}).get(key)
        if text is None:
            text = self._catalogs.get(self._default_locale, {}).get(key, key)
        return format_message(text, kwargs) if kwargs else text

    def sms(
        self,
        language: str | None,
        band: Band | str,
        location: str,
        hours: float,
        why: str,
        simulation: bool = False,
    ) -> str:
        """Localized SMS text. Red reads as high risk, anything else as medium."""
        locale = self.resolve_locale(language)
        level = "risk_high" if band == Band.RED else "risk_medium"
        return sms_message(
            self.t(f"alerts.{level}", locale),
            self.t("alerts.stay_safe", locale),
            location=location,
            hours=hours,
            why=why,
            simulation=simulation,
        )
