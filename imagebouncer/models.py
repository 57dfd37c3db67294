from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ADMISSION_API_VERSIONS = ("admission.k8s.io/v1", "admission.k8s.io/v1beta1")


class GroupVersionKind(BaseModel):
    group: str = ""
    version: str = ""
    kind: str = ""


class GroupVersionResource(BaseModel):
    group: str = ""
    version: str = ""
    resource: str = ""


class AdmissionRequest(BaseModel):
    """The request half of an AdmissionReview."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    uid: str = Field(..., description="Identifier echoed back in the response")
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    resource: Optional[GroupVersionResource] = None
    namespace: str = ""
    name: Optional[str] = None
    operation: Optional[str] = None
    raw_object: Optional[Dict[str, Any]] = Field(default=None, alias="object")


class AdmissionReview(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field(default=ADMISSION_API_VERSIONS[0], alias="apiVersion")
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None


# Pod wire schema, only the fields the image policy reads


class ContainerObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    image: str = ""


class ObjectMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    generate_name: str = Field(default="", alias="generateName")
    namespace: str = ""


class PodSpecObject(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    init_containers: List[ContainerObject] = Field(default_factory=list, alias="initContainers")
    containers: List[ContainerObject] = Field(default_factory=list)


class Pod(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpecObject


# Domain view consumed by the decision engine


@dataclass(frozen=True)
class Container:
    name: str
    image: str


@dataclass(frozen=True)
class PodSpec:
    """The parts of a pod the image policy evaluates."""

    name: str
    namespace: str
    init_containers: Tuple[Container, ...] = ()
    containers: Tuple[Container, ...] = ()

    @property
    def images(self) -> List[str]:
        return [c.image for c in self.containers]

    @property
    def init_images(self) -> List[str]:
        return [c.image for c in self.init_containers]

    @classmethod
    def from_pod(cls, pod: Pod, namespace: str = "", name: Optional[str] = None) -> "PodSpec":
        """Build the view; the request namespace wins over the object's own."""
        return cls(
            name=pod.metadata.name or pod.metadata.generate_name or name or "",
            namespace=namespace or pod.metadata.namespace,
            init_containers=tuple(Container(c.name, c.image) for c in pod.spec.init_containers),
            containers=tuple(Container(c.name, c.image) for c in pod.spec.containers),
        )
