"""Deployment manifest loading, rendering and patching

Manifests are plain Kubernetes YAML. Files ending in ``.j2`` are rendered
with Jinja2 first. Every document is then patched so that containers built
from our repository run the pushed image and every pod template carries the
image-pull secret.
"""

from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from aksdeploy.exceptions import ManifestError

TEMPLATE_SUFFIX = ".j2"

ROLLOUT_KINDS = ("Deployment", "StatefulSet", "DaemonSet")

POD_TEMPLATE_KINDS = ("Deployment", "StatefulSet", "DaemonSet", "ReplicaSet", "Job", "ReplicationController")


def render_template(path: Path, variables: Dict[str, Any]) -> str:
    """Render a Jinja2 manifest template

    Raises:
        ManifestError: On syntax errors or undefined variables
    """
    env = Environment(
        loader=FileSystemLoader(str(path.parent)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False
    )
    try:
        return env.get_template(path.name).render(**variables)
    except TemplateError as e:
        raise ManifestError(str(path), f"template error: {e}")


def load_manifests(paths: List[Path], variables: Optional[Dict[str, Any]] = None) -> List[Dict]:
    """Read, render and parse manifest files into a flat list of documents

    Args:
        paths: Manifest files in apply order
        variables: Template variables for ``.j2`` files

    Raises:
        ManifestError: If a file is missing or not valid YAML
    """
    documents = []

    for path in paths:
        if not path.is_file():
            raise ManifestError(str(path), "file not found")

        if path.suffix == TEMPLATE_SUFFIX:
            content = render_template(path, variables or {})
        else:
            content = path.read_text()

        try:
            parsed = list(yaml.safe_load_all(content))
        except yaml.YAMLError as e:
            raise ManifestError(str(path), f"invalid YAML ({e})")

        for document in parsed:
            # Skip empty documents and stray scalars between separators
            if not isinstance(document, dict) or not document:
                continue
            if "kind" not in document:
                raise ManifestError(str(path), "document without 'kind'")
            documents.append(document)

    if not documents:
        raise ManifestError(", ".join(str(p) for p in paths), "no Kubernetes objects found")

    return documents


def split_image(reference: str) -> Tuple[str, Optional[str]]:
    """Split an image reference into repository and tag/digest

    >>> split_image("myreg.azurecr.io/app:abc123")
    ('myreg.azurecr.io/app', 'abc123')
    >>> split_image("localhost:5000/app")
    ('localhost:5000/app', None)
    """
    if "@" in reference:
        repository, digest = reference.split("@", 1)
        return repository, digest

    slash = reference.rfind("/")
    colon = reference.rfind(":")
    if colon > slash:
        return reference[:colon], reference[colon + 1:]
    return reference, None


def _mapping(value) -> Dict:
    return value if isinstance(value, dict) else {}


def pod_specs(document: Dict) -> Iterator[Dict]:
    """Yield every pod spec inside a manifest document

    Sections that are missing, null or not mappings yield nothing.
    """
    kind = document.get("kind")
    spec = _mapping(document.get("spec"))

    if kind == "Pod":
        pod_spec = spec
    elif kind in POD_TEMPLATE_KINDS:
        pod_spec = _mapping(spec.get("template")).get("spec")
    elif kind == "CronJob":
        job_spec = _mapping(_mapping(spec.get("jobTemplate")).get("spec"))
        pod_spec = _mapping(job_spec.get("template")).get("spec")
    else:
        return

    if isinstance(pod_spec, dict) and pod_spec:
        yield pod_spec


def _containers(pod_spec: Dict) -> Iterator[Dict]:
    for key in ("initContainers", "containers"):
        for container in pod_spec.get(key) or []:
            if isinstance(container, dict):
                yield container


def patch_images(documents: List[Dict], image: str) -> int:
    """Point containers built from our repository at ``image``

    A container matches when its repository equals the image's full
    repository or just its last path segment (``app`` for
    ``myreg.azurecr.io/app``). Other images are left alone.

    Returns:
        Number of containers updated
    """
    repository, _ = split_image(image)
    short_name = repository.rsplit("/", 1)[-1]
    updated = 0

    for document in documents:
        for pod_spec in pod_specs(document):
            for container in _containers(pod_spec):
                current = container.get("image")
                if not current:
                    continue
                current_repository, _ = split_image(current)
                if current_repository in (repository, short_name):
                    container["image"] = image
                    updated += 1

    return updated


def add_pull_secrets(documents: List[Dict], secret_name: str) -> int:
    """Add ``secret_name`` to imagePullSecrets of every pod spec

    Returns:
        Number of pod specs that gained the secret
    """
    updated = 0

    for document in documents:
        for pod_spec in pod_specs(document):
            secrets = pod_spec.get("imagePullSecrets")
            if not isinstance(secrets, list):
                secrets = []
                pod_spec["imagePullSecrets"] = secrets
            if any(isinstance(s, dict) and s.get("name") == secret_name for s in secrets):
                continue
            secrets.append({"name": secret_name})
            updated += 1

    return updated


def rollout_targets(documents: List[Dict]) -> List[str]:
    """`kind/name` of every workload whose rollout can be watched"""
    targets = []
    for document in documents:
        kind = document.get("kind")
        name = (document.get("metadata") or {}).get("name")
        if kind in ROLLOUT_KINDS and name:
            targets.append(f"{kind.lower()}/{name}")
    return targets


def deployed_images(documents: List[Dict]) -> List[str]:
    """Every container image referenced by the documents"""
    images = []
    for document in documents:
        for pod_spec in pod_specs(document):
            for container in _containers(pod_spec):
                if container.get("image"):
                    images.append(container["image"])
    return images


def dump_manifests(documents: List[Dict]) -> str:
    return yaml.safe_dump_all(documents, sort_keys=False)
