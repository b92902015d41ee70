#!/usr/bin/env python3
"""
Calico Backend - Flask应用启动文件
"""

# 步骤1：确保monkey_patch是程序执行的第一行代码
import eventlet

eventlet.monkey_patch()

import logging
import os
from app import create_app
from app.ws import get_socketio

# 获取配置名称，默认为development
config_name = os.getenv("FLASK_ENV", "development")

# 创建Flask应用实例，`flask --app run seed` 等命令也使用它
app = create_app(config_name)

logging.basicConfig(
    level=app.config.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    """主函数 - 启动Flask应用"""
    socketio = get_socketio()

    # 获取端口，默认为5000
    port = int(os.getenv("PORT", 5000))

    # 获取主机地址，默认为0.0.0.0（允许外部访问）
    host = os.getenv("HOST", "0.0.0.0")

    # 获取调试模式，默认为True
    debug = os.getenv("FLASK_DEBUG", "True").lower() == "true"

    logger.info(f"Starting Calico Backend on {host}:{port}")
    logger.info(f"Environment: {config_name}, debug: {debug}")

    # 使用eventlet服务器启动应用
    socketio.run(app, host=host, port=port, debug=debug, use_reloader=debug)


if __name__ == "__main__":
    main()
