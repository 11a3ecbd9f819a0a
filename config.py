from dataclasses import dataclass
from typing import Any, Dict, List, Optional


MULTI_PLATFORM = "linux/amd64,linux/arm64"
MULTI_PLATFORM_BUILDER = "multi-platform"
DEFAULT_BUILDER = "default"
CACHE_TAG = "buildcache"

# Raw config key -> (environment fallback, default)
FIELD_DEFAULTS: Dict[str, tuple] = {
    "host": ("REGISTRY_HOST", None),
    "project": ("JOB_NAME", None),
    "name": (None, None),
    "tag": ("BUILD_NUMBER", "latest"),
    "platform": (None, "linux/amd64"),
    "path": (None, "./Dockerfile"),
    "enableCache": (None, True),
    "buildArgs": (None, []),
    "progress": (None, "auto"),
}

REQUIRED_FIELDS = ["name"]
RECOMMENDED_FIELDS = ["host", "project", "tag"]

REQUIRED_ENV_VARS = ["REGISTRY_HOST"]
OPTIONAL_ENV_VARS = ["JOB_NAME", "BUILD_NUMBER", "BUILDER"]

# Environment variable -> config field that can stand in for it
ENV_FIELD_MAP: Dict[str, Optional[str]] = {
    "REGISTRY_HOST": "host",
    "JOB_NAME": "project",
    "BUILD_NUMBER": "tag",
    "BUILDER": None,
}

INFO_ENV_VARS = [
    "JENKINS_VERSION", "NODE_LABELS", "WORKSPACE", "BUILD_NUMBER",
    "JOB_NAME", "GIT_COMMIT", "BUILD_URL", "JENKINS_URL",
]


@dataclass
class BuildConfig:
    """Resolved settings for one image build"""
    name: str
    host: Optional[str] = None
    project: Optional[str] = None
    tag: str = "latest"
    platform: str = "linux/amd64"
    path: str = "./Dockerfile"
    enable_cache: bool = True
    build_args: List[str] = None
    progress: str = "auto"

    def __post_init__(self):
        if self.build_args is None:
            self.build_args = []

    @property
    def builder_name(self) -> str:
        return MULTI_PLATFORM_BUILDER if self.platform == MULTI_PLATFORM else DEFAULT_BUILDER

    @property
    def is_multi_platform(self) -> bool:
        return self.platform == MULTI_PLATFORM

    @property
    def repository(self) -> str:
        """Image repository without tag, e.g. ``registry:5000/project/app``"""
        parts = [self.host, self.project, self.name]
        return "/".join(p for p in parts if p)

    def get_image_tag(self, tag: Optional[str] = None) -> str:
        return f"{self.repository}:{tag or self.tag}"

    @property
    def cache_ref(self) -> str:
        return self.get_image_tag(CACHE_TAG)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "project": self.project,
            "name": self.name,
            "tag": self.tag,
            "platform": self.platform,
            "path": self.path,
            "enableCache": self.enable_cache,
            "buildArgs": list(self.build_args),
            "progress": self.progress,
        }


@dataclass
class StepSettings:
    """Tool-level settings, loaded from an optional JSON file then the environment"""
    max_attempts: int = 3
    backoff_unit: float = 2.0
    prune_on_failure: bool = True
