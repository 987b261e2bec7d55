from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from orgscope.policy.scopes import Role


class AuthConfig(BaseModel):
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


def _validate_roles(value: list[str]) -> list[str]:
    normalized = [str(v).strip().upper() for v in value]
    unknown = sorted(set(normalized) - {r.value for r in Role})
    if unknown:
        raise ValueError(f"unknown roles: {unknown}")
    return normalized


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_roles: list[str] = Field(default_factory=list)
    scoped: bool = False

    @field_validator("required_roles")
    @classmethod
    def _check_roles(cls, value: list[str]) -> list[str]:
        return _validate_roles(value)


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    required_roles: list[str] = Field(default_factory=list)
    scoped: bool | None = None

    @field_validator("required_roles")
    @classmethod
    def _check_roles(cls, value: list[str]) -> list[str]:
        return _validate_roles(value)

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class AccessConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_roles: frozenset[str]
    scoped: bool


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/meetings/{id}" -> r"^/meetings/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class AccessConfig:
    """
    Runtime helper around the validated config + route matching.
    """

    def __init__(self, model: AccessConfigModel):
        self.model = model

        compiled: list[tuple[str, re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            compiled.append((rule.path, _path_template_to_regex(rule.path), rule))

        # Prefer exact matches over templates.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for r in self.model.routes:
            self._exact_rules.setdefault(r.path, []).append(r)
        self._compiled_rules = compiled

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        # 1) exact path match
        for candidate in self._exact_rules.get(path, []):
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        # 2) template match
        for _template, regex, candidate in self._compiled_rules:
            if method not in candidate.normalized_methods():
                continue
            if regex.match(path):
                return _effective(candidate, default)

        # 3) no match -> defaults
        return EffectiveRule(
            auth_required=default.auth_required,
            required_roles=frozenset(default.required_roles),
            scoped=default.scoped,
        )


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # A rule with role or scope requirements is auth-required even when the
    # global default is public.
    inferred_auth_required = default.auth_required or bool(rule.required_roles) or bool(rule.scoped)

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        required_roles=frozenset(rule.required_roles or default.required_roles),
        scoped=default.scoped if rule.scoped is None else rule.scoped,
    )


def load_access_config(path: Path) -> AccessConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "access" not in raw:
        raise ValueError(f"Missing top-level 'access' key in config: {path}")

    model = AccessConfigModel.model_validate(raw["access"])
    return AccessConfig(model)
