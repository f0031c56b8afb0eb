"""aksdeploy - build, push and deploy a container image to AKS"""

__version__ = "0.1.0"
