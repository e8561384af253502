"""ManasX - learns a codebase's conventions and governs changes against them."""

__version__ = "0.1.0"

from .ai_auditor import AIAuditor
from .ai_detector import AIDetector
from .classifier import ChatModelClassifier, CodeClassifier, NullClassifier
from .config import Settings, get_settings
from .drift import DriftDetector
from .errors import ConfigurationError, ManasXError, StartupError, UnreadableFileError
from .learner import PatternLearner, load_profile, save_profile
from .logs import GovernanceLog
from .monitor import ChangeEvent, ContinuousMonitor, MonitorState
from .rules import RuleEngine, RuleRegistry, register
from .tokenizer import RegexTokenizer, Tokenizer

__all__ = [
    "AIAuditor",
    "AIDetector",
    "ChangeEvent",
    "ChatModelClassifier",
    "CodeClassifier",
    "ConfigurationError",
    "ContinuousMonitor",
    "DriftDetector",
    "GovernanceLog",
    "ManasXError",
    "MonitorState",
    "NullClassifier",
    "PatternLearner",
    "RegexTokenizer",
    "RuleEngine",
    "RuleRegistry",
    "Settings",
    "StartupError",
    "UnreadableFileError",
    "Tokenizer",
    "get_settings",
    "load_profile",
    "register",
    "save_profile",
]
