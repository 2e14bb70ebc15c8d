"""GitOps platform - Pulumi entry point for network, EKS and Flux."""

import pulumi

from infra.config import load_environment_table, load_stack_config
from infra.log import setup_logging
from infra.materialize import Materializer
from infra.settings import get_settings
from infra.stack import build_stack

settings = get_settings()
setup_logging(settings.log_level)

stack = pulumi.get_stack()
environment = settings.environment or stack
config = load_stack_config(environment, load_environment_table(settings.environments_file))

# Build the full desired-state graph before anything is registered
platform = build_stack(
    stack=stack,
    environment=environment,
    config=config,
    resolve_secret=pulumi.Config().require_secret,
)

materializer = Materializer(platform.graph)
materializer.run()

networking = platform.networking
kubernetes = platform.kubernetes

# Exports
pulumi.export("vpc_id", materializer.resolve(networking.vpc.ref()))
pulumi.export("public_subnet_ids", materializer.resolve(networking.public_subnet_ids))
pulumi.export("private_subnet_ids", materializer.resolve(networking.private_subnet_ids))
pulumi.export("cluster_name", materializer.resolve(kubernetes.cluster_name))
pulumi.export("cluster_endpoint", materializer.resolve(kubernetes.cluster_endpoint))
pulumi.export("kubeconfig", pulumi.Output.secret(materializer.resolve(kubernetes.kubeconfig)))
pulumi.export("flux_namespace", materializer.resolve(platform.flux.namespace.ref("metadata.name")))
