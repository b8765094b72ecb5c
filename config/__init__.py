"""配置模块 - 全局设置与计费配置"""
