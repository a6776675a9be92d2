"""TFS / Azure DevOps to GitLab mirror and review bridge"""

__version__ = "1.0.0"
