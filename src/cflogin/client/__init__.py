"""HTTP clients for the cloud control plane and the on-prem metadata service."""

from cflogin.client.cloud import CloudClient, SSOIdentity
from cflogin.client.mds import MDSClient, MDSToken, build_ssl_context

__all__ = ["CloudClient", "MDSClient", "MDSToken", "SSOIdentity", "build_ssl_context"]
