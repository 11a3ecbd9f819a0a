"""
Validation and resolution of the build configuration block.

The validator never raises on its own: it fills a ValidationReport which the
caller inspects, and ``ValidationReport.raise_for_errors`` turns accumulated
errors into a single ConfigurationError.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from config import (
    BuildConfig,
    FIELD_DEFAULTS,
    REQUIRED_FIELDS,
    RECOMMENDED_FIELDS,
    REQUIRED_ENV_VARS,
    OPTIONAL_ENV_VARS,
    ENV_FIELD_MAP,
    MULTI_PLATFORM,
)
from exceptions import ConfigurationError
from utils import ICON_OK, ICON_FAIL, ICON_WARN, ICON_HINT, ICON_LIST

logger = logging.getLogger(__name__)

BARE_VARIABLE_NAMES = ("BUILD_NUMBER", "JOB_NAME")
STRING_FIELDS = ("host", "project", "name", "tag", "platform", "path", "progress")


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self):
        if self.errors:
            raise ConfigurationError(
                f"Configuration validation failed with {len(self.errors)} error(s); fix them and retry",
                report=self,
                suggestions=self.suggestions,
            )

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def check_syntax(config: Mapping[str, Any], report: ValidationReport):
    """Flag unexpanded template placeholders and bare variable names used as literals"""
    for key, value in config.items():
        if not isinstance(value, str):
            continue

        if "${" in value and not value.startswith("./") and not value.startswith("/"):
            report.errors.append(f"Parameter '{key}' contains an unexpanded placeholder: {value}")
            report.suggestions.append(
                f"Replace '{key}: {value}' with a literal value, leave '{key}' unset to use its "
                f"environment fallback, or pass it with --set {key}=<value>"
            )

        if value in BARE_VARIABLE_NAMES:
            report.errors.append(f"Parameter '{key}' uses the bare variable name {value}")
            report.suggestions.append(
                f"Remove '{key}: {value}' so the value is read from the {value} environment variable"
            )


def check_environment(config: Mapping[str, Any], env: Optional[Mapping[str, str]], report: ValidationReport):
    env = env or {}

    def provided(var: str) -> bool:
        config_key = ENV_FIELD_MAP.get(var)
        return bool(env.get(var)) or (config_key is not None and not _is_missing(config.get(config_key)))

    for var in REQUIRED_ENV_VARS:
        if not provided(var):
            report.warnings.append(
                f"Environment variable {var} is not set and the config does not provide "
                f"'{ENV_FIELD_MAP[var]}'"
            )
            report.suggestions.append(
                f"Set {var} in the pipeline environment or add '{ENV_FIELD_MAP[var]}' to the config"
            )

    for var in OPTIONAL_ENV_VARS:
        if not provided(var):
            report.warnings.append(f"Optional environment variable {var} is not set; defaults apply")


def check_completeness(config: Mapping[str, Any], report: ValidationReport):
    for key in REQUIRED_FIELDS:
        if _is_missing(config.get(key)):
            report.errors.append(f"Missing required parameter: {key}")
            report.suggestions.append(f"Add '{key}' to the configuration")

    for key in RECOMMENDED_FIELDS:
        if config.get(key) is None:
            report.warnings.append(
                f"Missing recommended parameter: {key}; the environment or a default will be used"
            )


def check_types(config: Mapping[str, Any], report: ValidationReport):
    for key, value in config.items():
        if key not in FIELD_DEFAULTS:
            report.warnings.append(f"Unknown parameter '{key}' is ignored")
            continue
        if value is None:
            continue
        if key == "enableCache" and not isinstance(value, bool):
            report.errors.append(f"Parameter 'enableCache' must be true or false, got {value!r}")
        elif key == "buildArgs" and (
            not isinstance(value, (list, tuple)) or not all(isinstance(a, str) for a in value)
        ):
            report.errors.append("Parameter 'buildArgs' must be a list of strings")
        elif key in STRING_FIELDS and not isinstance(value, str):
            # YAML reads `tag: 010` as the int 8
            report.errors.append(f"Parameter '{key}' must be a string, got {type(value).__name__}")
            report.suggestions.append(f"Quote '{key}' in the YAML file so it is read as text")
        elif key in STRING_FIELDS and key not in REQUIRED_FIELDS and not value.strip():
            report.errors.append(f"Parameter '{key}' is empty")
            report.suggestions.append(
                f"Remove '{key}' to fall back to the environment or the default, or give it a value"
            )


def suggest_optimizations(config: Mapping[str, Any], report: ValidationReport):
    if config.get("enableCache") is None:
        report.suggestions.append("Set 'enableCache' explicitly to control registry build caching")

    platform = config.get("platform")
    if not platform:
        report.suggestions.append("Set 'platform' explicitly; it defaults to linux/amd64")
    elif isinstance(platform, str) and "," in platform:
        report.suggestions.append("Multi-platform build: make sure the 'multi-platform' buildx builder exists")
        if platform != MULTI_PLATFORM:
            report.warnings.append(
                f"Platform '{platform}' lists several architectures but only '{MULTI_PLATFORM}' "
                f"selects the 'multi-platform' builder; the 'default' builder will be used"
            )
            report.suggestions.append(f"Use platform '{MULTI_PLATFORM}' for a multi-architecture build")

    if not config.get("buildArgs"):
        report.suggestions.append("Consider 'buildArgs' to pass build-time variables")


def report_results(report: ValidationReport):
    if report.ok and not report.warnings:
        logger.info("%s Configuration validated, no issues found", ICON_OK)
    if report.errors:
        logger.error("%s Found %d error(s):", ICON_FAIL, len(report.errors))
        for error in report.errors:
            logger.error("   - %s", error)
    if report.warnings:
        logger.warning("%s Found %d warning(s):", ICON_WARN, len(report.warnings))
        for warning in report.warnings:
            logger.warning("   - %s", warning)
    if report.suggestions:
        logger.info("%s Suggestions:", ICON_HINT)
        for suggestion in report.suggestions:
            logger.info("   - %s", suggestion)


def validate_build_config(config: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> ValidationReport:
    """Run every check against the raw config block and log the report"""
    logger.info("Validating build configuration...")
    report = ValidationReport()
    check_syntax(config, report)
    check_environment(config, env, report)
    check_completeness(config, report)
    check_types(config, report)
    suggest_optimizations(config, report)
    report_results(report)
    return report


def safe_get_config(config: Mapping[str, Any], key: str, env: Optional[Mapping[str, str]] = None,
                    env_key: Optional[str] = None, default: Any = None) -> Any:
    """config[key] if set, else env[env_key] if non-empty, else default"""
    if config.get(key) is not None:
        return config[key]
    if env and env_key and env.get(env_key):
        return env[env_key]
    return default


def resolve_build_config(config: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> BuildConfig:
    """Apply the config -> environment -> default chain to every field"""
    values = {}
    for key, (env_key, default) in FIELD_DEFAULTS.items():
        values[key] = safe_get_config(config, key, env, env_key, default)

    if _is_missing(values["name"]):
        raise ConfigurationError("Missing required parameter: name",
                                 suggestions=["Add 'name' to the configuration"])
    if _is_missing(values["host"]):
        raise ConfigurationError(
            "Registry host is not set: provide 'host' or export REGISTRY_HOST",
            suggestions=["Set REGISTRY_HOST in the pipeline environment or add 'host' to the configuration"],
        )

    return BuildConfig(
        name=values["name"],
        host=values["host"],
        project=values["project"],
        tag=str(values["tag"]),
        platform=values["platform"],
        path=values["path"],
        enable_cache=values["enableCache"],
        build_args=list(values["buildArgs"]),
        progress=values["progress"],
    )


def generate_config_report(config: BuildConfig):
    logger.info("%s Final configuration:", ICON_LIST)
    logger.info("   Registry:    %s", config.host or "NOT SET")
    logger.info("   Project:     %s", config.project or "NOT SET")
    logger.info("   Name:        %s", config.name)
    logger.info("   Tag:         %s", config.tag)
    logger.info("   Platform:    %s (builder: %s)", config.platform, config.builder_name)
    logger.info("   Dockerfile:  %s", config.path)
    logger.info("   Cache:       %s", config.enable_cache)
    logger.info("   Build args:  %s", config.build_args)
    logger.info("   Progress:    %s", config.progress)
