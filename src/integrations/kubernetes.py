"""
Kubernetes API integration.

Builds a CoreV1 API client (in-cluster, or from a kubeconfig when running
outside the cluster) and lists the images of running containers.
"""

import logging
from typing import Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from constants import K8S_REQUEST_TIMEOUT
from core.context import CollectionContext
from core.exceptions import ConfigurationException, ListingError
from core.registry_interface import PodLister

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 500


def load_core_api(kubeconfig_path: Optional[str] = None) -> client.CoreV1Api:
    """
    Create a CoreV1 API client.

    Args:
        kubeconfig_path: Path to a kubeconfig for running outside the cluster;
            None uses the in-cluster service account

    Returns:
        CoreV1Api client

    Raises:
        ConfigurationException: If no usable Kubernetes configuration is found
    """
    try:
        if kubeconfig_path:
            api_client = config.new_client_from_config(config_file=kubeconfig_path)
        else:
            configuration = client.Configuration()
            config.load_incluster_config(client_configuration=configuration)
            api_client = client.ApiClient(configuration)
    except (ConfigException, OSError) as e:
        source = f"kubeconfig path {kubeconfig_path}" if kubeconfig_path else "in-cluster config"
        raise ConfigurationException(f"Error reading {source}: {e}") from e

    return client.CoreV1Api(api_client)


class KubernetesPodLister(PodLister):
    """
    Lists pods across all namespaces and collects their container image ids.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        request_timeout: float = K8S_REQUEST_TIMEOUT,
    ):
        """
        Initialize pod lister.

        Args:
            core_api: CoreV1 API client
            page_limit: Pods requested per page
            request_timeout: Timeout per API request (seconds)
        """
        self.core_api = core_api
        self.page_limit = page_limit
        self.request_timeout = request_timeout

    def list_pods(self, context: Optional[CollectionContext] = None) -> list:
        """
        List pods in all namespaces, following pagination.

        Raises:
            ListingError: If the API request fails
        """
        pods = []
        continue_token = None

        while True:
            timeout = context.timeout(self.request_timeout) if context is not None else self.request_timeout
            try:
                response = self.core_api.list_pod_for_all_namespaces(
                    limit=self.page_limit,
                    _continue=continue_token,
                    watch=False,
                    _request_timeout=timeout,
                )
            except ApiException as e:
                raise ListingError(f"Error listing pods: {e.status} {e.reason}") from e
            except urllib3.exceptions.HTTPError as e:
                raise ListingError(f"Error listing pods: {e}") from e

            pods.extend(response.items or [])
            continue_token = response.metadata._continue if response.metadata else None
            if not continue_token:
                break

            logger.debug(f"Continuing pod list pagination after {len(pods)} pods")

        return pods

    def list_image_ids(self, context: Optional[CollectionContext] = None) -> set[str]:
        image_ids = set()
        for pod in self.list_pods(context):
            if pod.status is None:
                continue
            for container in pod.status.container_statuses or []:
                if container.image_id:
                    image_ids.add(container.image_id)
        return image_ids
