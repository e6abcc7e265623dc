"""
SOCKS5 客户端 - 日志管理模块

功能概述:
本模块为命令行工具和嵌入本库的应用提供日志初始化，包括：
1. 多级别日志记录（DEBUG, INFO, WARNING, ERROR, CRITICAL）
2. 日志轮转（按大小/按日期）
3. 上下文字段（代理地址、目标地址）
4. YAML 配置文件和环境变量支持

库代码本身只通过 logging.getLogger() 记录日志，从不安装处理器；
只有调用 LoggerManager().initialize() 的应用才会配置输出。
"""

import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(context)s] - %(message)s"


@dataclass
class LogConfig:
    """
    日志配置数据类

    Attributes:
        level: 日志级别
        log_dir: 日志存储目录
        log_file: 日志文件名
        max_bytes: 单个日志文件最大大小（字节）
        backup_count: 保留的备份文件数量
        rotation_type: 轮转类型（size, date, none）
        format_string: 日志格式字符串
        enable_console: 是否输出到控制台
        enable_file: 是否输出到文件
        context_fields: 上下文字段列表
    """
    level: str = "INFO"
    log_dir: str = "logs"
    log_file: str = "socks5-tunnel.log"
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    rotation_type: str = "size"
    format_string: str = DEFAULT_FORMAT
    enable_console: bool = True
    enable_file: bool = False
    context_fields: List[str] = field(default_factory=lambda: ["proxy", "target"])


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == 'true'


class ContextFilter(logging.Filter):
    """为日志记录添加上下文信息"""

    def __init__(self, context_fields: Optional[List[str]] = None):
        super().__init__()
        self.context_fields = context_fields or []
        self.context_data = {}

    def add_context(self, **kwargs):
        self.context_data.update(kwargs)

    def filter(self, record):
        record.context = " | ".join(
            f"{name}={self.context_data.get(name, '-')}" for name in self.context_fields
        )
        return True


class LogFormatter(logging.Formatter):
    """
    自定义日志格式化器

    支持彩色输出，缺少 context 字段的记录补为 "-"
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, datefmt=None, use_color=False):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record):
        if not hasattr(record, 'context'):
            record.context = "-"

        levelname = record.levelname
        if self.use_color and levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class LoggerManager:
    """
    日志管理器（单例）

    管理日志系统的初始化和上下文
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self.config: Optional[LogConfig] = None
            self.context_filter: Optional[ContextFilter] = None
            self._initialized = True

    def load_config_from_file(self, config_file: str) -> LogConfig:
        """
        从 YAML 配置文件的 logging 段加载日志配置，环境变量优先

        Args:
            config_file: 配置文件路径

        Returns:
            LogConfig: 日志配置对象
        """
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                log_config = (yaml.safe_load(f) or {}).get('logging') or {}
        except FileNotFoundError:
            return self._load_config_from_env()
        except yaml.YAMLError as e:
            print(f"加载日志配置文件失败: {e}，使用环境变量配置", file=sys.stderr)
            return self._load_config_from_env()

        defaults = LogConfig()
        return LogConfig(
            level=os.getenv('LOG_LEVEL', log_config.get('level', defaults.level)),
            log_dir=os.getenv('LOG_DIR', log_config.get('log_dir', defaults.log_dir)),
            log_file=os.getenv('LOG_FILE', log_config.get('log_file', defaults.log_file)),
            max_bytes=int(os.getenv('LOG_MAX_BYTES', log_config.get('max_bytes', defaults.max_bytes))),
            backup_count=int(os.getenv('LOG_BACKUP_COUNT', log_config.get('backup_count', defaults.backup_count))),
            rotation_type=os.getenv('LOG_ROTATION_TYPE', log_config.get('rotation_type', defaults.rotation_type)),
            format_string=os.getenv('LOG_FORMAT', log_config.get('format_string', defaults.format_string)),
            enable_console=_env_flag('LOG_ENABLE_CONSOLE', log_config.get('enable_console', defaults.enable_console)),
            enable_file=_env_flag('LOG_ENABLE_FILE', log_config.get('enable_file', defaults.enable_file)),
            context_fields=log_config.get('context_fields', defaults.context_fields),
        )

    def _load_config_from_env(self) -> LogConfig:
        defaults = LogConfig()
        return LogConfig(
            level=os.getenv('LOG_LEVEL', defaults.level),
            log_dir=os.getenv('LOG_DIR', defaults.log_dir),
            log_file=os.getenv('LOG_FILE', defaults.log_file),
            max_bytes=int(os.getenv('LOG_MAX_BYTES', defaults.max_bytes)),
            backup_count=int(os.getenv('LOG_BACKUP_COUNT', defaults.backup_count)),
            rotation_type=os.getenv('LOG_ROTATION_TYPE', defaults.rotation_type),
            format_string=os.getenv('LOG_FORMAT', defaults.format_string),
            enable_console=_env_flag('LOG_ENABLE_CONSOLE', defaults.enable_console),
            enable_file=_env_flag('LOG_ENABLE_FILE', defaults.enable_file),
        )

    def initialize(self, config: Optional[LogConfig] = None, config_file: Optional[str] = None):
        """
        初始化日志系统

        Args:
            config: 日志配置对象（可选）
            config_file: 配置文件路径（可选）
        """
        if config:
            self.config = config
        elif config_file:
            self.config = self.load_config_from_file(config_file)
        else:
            self.config = self._load_config_from_env()

        level = getattr(logging, self.config.level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()
        self.context_filter = ContextFilter(self.config.context_fields)

        if self.config.enable_console:
            self._add_handler(root_logger, logging.StreamHandler(sys.stderr), sys.stderr.isatty())
        if self.config.enable_file:
            self._add_handler(root_logger, self._create_file_handler(), False)

    def _create_file_handler(self) -> logging.Handler:
        log_dir = Path(self.config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = log_dir / self.config.log_file

        if self.config.rotation_type == 'size':
            return logging.handlers.RotatingFileHandler(
                filename=log_file_path,
                maxBytes=self.config.max_bytes,
                backupCount=self.config.backup_count,
                encoding='utf-8'
            )
        if self.config.rotation_type == 'date':
            return logging.handlers.TimedRotatingFileHandler(
                filename=log_file_path,
                when='midnight',
                interval=1,
                backupCount=self.config.backup_count,
                encoding='utf-8'
            )
        return logging.FileHandler(filename=log_file_path, encoding='utf-8')

    def _add_handler(self, logger: logging.Logger, handler: logging.Handler, use_color: bool):
        handler.setLevel(logger.level)
        # 处理器级过滤器对所有子 logger 传播上来的记录都生效
        handler.addFilter(self.context_filter)
        handler.setFormatter(LogFormatter(
            fmt=self.config.format_string,
            datefmt='%Y-%m-%d %H:%M:%S',
            use_color=use_color
        ))
        logger.addHandler(handler)

    def add_context(self, **kwargs):
        if self.context_filter:
            self.context_filter.add_context(**kwargs)


def add_context(**kwargs):
    """添加上下文信息（便捷函数）"""
    LoggerManager().add_context(**kwargs)
