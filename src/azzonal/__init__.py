"""azzonal - Azure availability zone VM provisioning sample

Philosophy:
- Ruthless simplicity
- Sequential, fail-fast provisioning with guaranteed teardown
- Security by design (no credentials in code or config files)

azzonal creates two Linux VMs pinned to an availability zone, together with
the network and storage resources they need, and deletes everything again
by removing the resource group.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
