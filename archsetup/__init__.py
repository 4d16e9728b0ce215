"""archsetup — confirm-gated provisioning for an Arch Linux desktop."""

__version__ = "0.1.0"
