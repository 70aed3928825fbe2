from .step_10_create_directories import CreateDirectoriesStep
from .step_20_install_files import InstallSessionFilesStep
from .step_30_enable_autologin import EnableAutologinStep
from .step_70_remove_files import RemoveSessionFilesStep
from .step_80_disable_autologin import DisableAutologinStep

__all__ = [
    "CreateDirectoriesStep",
    "InstallSessionFilesStep",
    "EnableAutologinStep",
    "RemoveSessionFilesStep",
    "DisableAutologinStep",
]
