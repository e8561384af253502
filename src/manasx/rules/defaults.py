"""Built-in and starter rule configurations."""

import os
from datetime import datetime
from typing import Optional

from ..models import RuleConfig

VALID_CATEGORIES = (
    "security",
    "performance",
    "architecture",
    "naming",
    "imports",
    "testing",
    "comments",
)


def default_configuration() -> RuleConfig:
    """Configuration used when no rule file can be found."""
    return RuleConfig.model_validate(
        {
            "metadata": {
                "version": "1.0.0",
                "name": "Default ManasX Rules",
                "description": "Default organizational rules for code governance",
                "author": "ManasX",
                "created": datetime.now().isoformat(),
            },
            "global": {"severity": "medium", "autofix": False},
            "rules": {
                "security": {
                    "enabled": True,
                    "rules": {
                        "no-eval": {
                            "name": "No eval() usage",
                            "description": "Prohibits the use of eval() function",
                            "severity": "critical",
                            "enabled": True,
                        }
                    },
                },
                "performance": {
                    "enabled": True,
                    "rules": {
                        "no-sync-fs": {
                            "name": "No synchronous file operations",
                            "description": "Prohibits synchronous file system operations",
                            "severity": "high",
                            "enabled": True,
                        }
                    },
                },
            },
            "exceptions": [],
        }
    )


def initial_configuration(author: Optional[str] = None) -> RuleConfig:
    """Starter configuration written for new adopters.

    Apart from ``created`` and ``author`` the content is the same on every call.
    """
    return RuleConfig.model_validate(
        {
            "metadata": {
                "version": "1.0.0",
                "name": "Project Code Governance Rules",
                "description": "Organizational rules for maintaining code quality and consistency",
                "author": author or os.environ.get("USER", "Team"),
                "created": datetime.now().isoformat(),
            },
            "global": {"severity": "medium", "autofix": False, "reportUnusedRules": True},
            "rules": {
                "security": {
                    "enabled": True,
                    "description": "Security-related rules to prevent vulnerabilities",
                    "rules": {
                        "no-eval": {
                            "name": "Prohibit eval() usage",
                            "description": "The eval() function poses security risks and should not be used",
                            "severity": "critical",
                            "enabled": True,
                            "message": "eval() usage is prohibited for security reasons",
                        },
                        "no-dangerous-html": {
                            "name": "Avoid dangerous HTML manipulation",
                            "description": "Direct innerHTML/outerHTML manipulation can lead to XSS vulnerabilities",
                            "severity": "high",
                            "enabled": True,
                        },
                        "require-company-fetch": {
                            "name": "Use company fetch wrapper",
                            "description": "All API calls must use the company fetch wrapper instead of raw fetch",
                            "severity": "medium",
                            "enabled": True,
                            "parameters": {"wrapperName": "companyFetch"},
                        },
                    },
                },
                "performance": {
                    "enabled": True,
                    "description": "Performance-related rules for optimal code execution",
                    "rules": {
                        "no-sync-fs": {
                            "name": "Avoid synchronous file operations",
                            "description": "Synchronous file operations block the event loop",
                            "severity": "high",
                            "enabled": True,
                        }
                    },
                },
                "architecture": {
                    "enabled": True,
                    "description": "Architectural rules for code organization",
                    "rules": {
                        "feature-folder-structure": {
                            "name": "Use feature folder structure",
                            "description": "Code should be organized by features, not by file types",
                            "severity": "medium",
                            "enabled": True,
                        }
                    },
                },
                "naming": {
                    "enabled": True,
                    "description": "Naming convention rules",
                    "rules": {
                        "camelcase-variable-naming": {
                            "name": "Use camelCase for variables",
                            "description": "Variables should follow camelCase naming convention",
                            "severity": "low",
                            "enabled": True,
                        }
                    },
                },
            },
            "exceptions": [],
        }
    )
