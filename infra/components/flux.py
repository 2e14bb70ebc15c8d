"""Flux GitOps bootstrap.

Installs Flux into the cluster and declares what it should reconcile:
- flux-system namespace and the flux2 Helm release
- Secrets with Git credentials
- GitRepository sources
- Kustomizations (one per application) and their target namespaces
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from infra import kinds
from infra.components.eks import EksCluster
from infra.components.git_credentials import Credential, make_credential, secret_string_data
from infra.config import FluxConfig, GitOpsConfig
from infra.errors import UnresolvedReferenceError
from infra.graph import ResourceGraph, ResourceHandle

logger = logging.getLogger(__name__)

GIT_REPOSITORY_API_VERSION = "source.toolkit.fluxcd.io/v1beta2"
KUSTOMIZATION_API_VERSION = "kustomize.toolkit.fluxcd.io/v1"

FLUX_CONTROLLERS = (
    "sourceController",
    "kustomizeController",
    "helmController",
    "notificationController",
    "imageReflectorController",
    "imageAutomationController",
)


@dataclass(frozen=True)
class GitSource:
    name: str
    url: str
    branch: str = "main"
    interval: str = "5m"
    secret_ref: Optional[str] = None


@dataclass(frozen=True)
class Kustomization:
    name: str
    git_source: str
    path: str
    namespace: str
    interval: str = "5m"
    prune: bool = True
    target_namespace: Optional[str] = None
    depends_on: tuple[str, ...] = ()


class FluxBootstrap:
    """Flux installation plus the sources and kustomizations it manages.

    The namespace and Helm release are declared on construction. Every
    later declaration must only reference names declared before it.
    """

    def __init__(
        self,
        graph: ResourceGraph,
        name: str,
        cluster: EksCluster,
        config: FluxConfig,
    ):
        self.graph = graph
        self.name = name
        self.config = config
        self.provider = cluster.k8s_provider
        self.namespace_name = config.namespace

        self.credentials: dict[str, ResourceHandle] = {}
        self.git_sources: dict[str, ResourceHandle] = {}
        self.kustomizations: dict[str, ResourceHandle] = {}
        self.app_namespaces: dict[str, ResourceHandle] = {}

        self.namespace = self._add(
            "namespace",
            kinds.NAMESPACE,
            {
                "metadata": {
                    "name": self.namespace_name,
                    "labels": {
                        "app.kubernetes.io/instance": self.namespace_name,
                        "app.kubernetes.io/part-of": "flux",
                    },
                },
            },
            depends_on=[cluster.cluster],
        )

        self.release = self._add(
            "release",
            kinds.HELM_RELEASE,
            {
                "chart": config.chart,
                "version": config.chart_version,
                "repository_opts": {"repo": config.chart_repo},
                "namespace": self.namespace.ref("metadata.name"),
                "values": {controller: {"create": True} for controller in FLUX_CONTROLLERS},
            },
            depends_on=[self.namespace],
        )

    def _add(
        self,
        suffix: str,
        kind: str,
        spec: dict,
        depends_on: list[ResourceHandle],
    ) -> ResourceHandle:
        return self.graph.add(
            f"{self.name}-{suffix}",
            kind,
            spec,
            depends_on=depends_on,
            provider=self.provider,
            owner=self.name,
        )

    def add_credential(self, credential: Credential) -> ResourceHandle:
        """Store a Git credential as a secret in the Flux namespace."""
        secret = self._add(
            f"credential-{credential.name}",
            kinds.SECRET,
            {
                "metadata": {"name": credential.name, "namespace": self.namespace_name},
                "type": "Opaque",
                "string_data": secret_string_data(credential),
            },
            depends_on=[self.namespace],
        )
        self.credentials[credential.name] = secret
        return secret

    def add_git_source(self, source: GitSource) -> ResourceHandle:
        """Register a GitRepository with the source controller."""
        depends_on = [self.release]
        spec: dict[str, Any] = {
            "interval": source.interval,
            "url": source.url,
            "ref": {"branch": source.branch},
        }
        if source.secret_ref:
            if source.secret_ref not in self.credentials:
                raise UnresolvedReferenceError(
                    f"GitRepository '{source.name}'", source.secret_ref, "credential"
                )
            depends_on.append(self.credentials[source.secret_ref])
            spec["secretRef"] = {"name": source.secret_ref}

        repo = self._add(
            f"git-{source.name}",
            kinds.GIT_REPOSITORY,
            {
                "api_version": GIT_REPOSITORY_API_VERSION,
                "kind": "GitRepository",
                "metadata": {"name": source.name, "namespace": self.namespace_name},
                "spec": spec,
            },
            depends_on=depends_on,
        )
        self.git_sources[source.name] = repo
        return repo

    def add_kustomization(self, kustomization: Kustomization) -> ResourceHandle:
        """Declare a Kustomization deploying ``path`` from a Git source.

        The Kustomization lives in the Flux namespace and deploys into its
        target namespace, which defaults to the app namespace.
        """
        consumer = f"Kustomization '{kustomization.name}'"
        if kustomization.git_source not in self.git_sources:
            raise UnresolvedReferenceError(consumer, kustomization.git_source, "GitRepository")
        for dependency in kustomization.depends_on:
            if dependency not in self.kustomizations:
                raise UnresolvedReferenceError(consumer, dependency, "Kustomization")

        app_namespace = self._app_namespace(kustomization.namespace)
        spec: dict[str, Any] = {
            "interval": kustomization.interval,
            "path": kustomization.path,
            "prune": kustomization.prune,
            "sourceRef": {
                "kind": "GitRepository",
                "name": kustomization.git_source,
                "namespace": self.namespace_name,
            },
            "targetNamespace": kustomization.target_namespace or kustomization.namespace,
        }
        if kustomization.depends_on:
            spec["dependsOn"] = [{"name": dep} for dep in kustomization.depends_on]

        handle = self._add(
            f"kustomization-{kustomization.name}",
            kinds.KUSTOMIZATION,
            {
                "api_version": KUSTOMIZATION_API_VERSION,
                "kind": "Kustomization",
                "metadata": {"name": kustomization.name, "namespace": self.namespace_name},
                "spec": spec,
            },
            depends_on=[
                self.git_sources[kustomization.git_source],
                app_namespace,
                *(self.kustomizations[dep] for dep in kustomization.depends_on),
            ],
        )
        self.kustomizations[kustomization.name] = handle
        return handle

    def _app_namespace(self, namespace: str) -> ResourceHandle:
        # Apps may share a namespace; declare it once.
        if namespace == self.namespace_name:
            return self.namespace
        if namespace not in self.app_namespaces:
            self.app_namespaces[namespace] = self._add(
                f"app-namespace-{namespace}",
                kinds.NAMESPACE,
                {"metadata": {"name": namespace}},
                depends_on=[self.namespace],
            )
        return self.app_namespaces[namespace]


def build_gitops(
    graph: ResourceGraph,
    name: str,
    cluster: EksCluster,
    config: GitOpsConfig,
    resolve_secret: Callable[[str], Any],
) -> FluxBootstrap:
    """Declare Flux and everything in the GitOps configuration.

    Credentials are validated before the bootstrap declares anything, then
    declared ahead of the sources that reference them.

    Args:
        resolve_secret: Returns the value of a secret config key, e.g.
            ``pulumi.Config().require_secret``.
    """
    credentials = [
        make_credential(
            c.name,
            c.type,
            **{field: resolve_secret(key) for field, key in c.secrets.items()},
        )
        for c in config.credentials
    ]

    bootstrap = FluxBootstrap(graph, name, cluster, config.flux)
    for credential in credentials:
        bootstrap.add_credential(credential)
    for source in config.git_sources:
        bootstrap.add_git_source(
            GitSource(
                name=source.name,
                url=source.url,
                branch=source.branch,
                interval=source.interval,
                secret_ref=source.secret_ref,
            )
        )
    for app in config.apps:
        bootstrap.add_kustomization(
            Kustomization(
                name=app.name,
                git_source=app.git_source,
                path=app.path,
                namespace=app.namespace,
                interval=app.interval,
                prune=app.prune,
                target_namespace=app.target_namespace,
                depends_on=tuple(app.depends_on),
            )
        )

    logger.info(
        "Flux %s: %d credentials, %d sources, %d kustomizations",
        name,
        len(bootstrap.credentials),
        len(bootstrap.git_sources),
        len(bootstrap.kustomizations),
    )
    return bootstrap
