#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py

会引导用户填写必要的配置项，生成 .env 文件。
"""
import os

# 项目根目录
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


# 配置项定义：(env_key, 描述, 默认值, 是否必填)
CONFIG_ITEMS = [
    # === 数据库 ===
    ("DATABASE_URL", "数据库连接地址", "sqlite:///data/venue.db", True),
    ("WRITE_TIMEOUT_SECONDS", "写入槽位等待时间（秒）", "5", False),

    # === 账单 ===
    ("INVOICE_DUE_DAYS", "账单到期天数", "7", False),

    # === 定时任务 ===
    ("EXPIRY_CHECK_HOUR", "每日订阅到期检查（小时）", "0", False),
    ("EXPIRY_CHECK_MINUTE", "每日订阅到期检查（分钟）", "5", False),

    # === 日志 ===
    ("LOG_LEVEL", "日志级别", "INFO", False),
]

SECTION_NAMES = {
    "DATABASE": "# === 数据库配置 ===",
    "WRITE": "# === 数据库配置 ===",
    "INVOICE": "# === 账单配置 ===",
    "EXPIRY": "# === 定时任务配置 ===",
    "LOG": "# === 日志配置 ===",
}


def build_env_lines(values):
    """按配置项顺序生成 .env 内容行，同一 section 只写一次标题。"""
    env_lines = [
        "# Venue Billing 配置文件",
        "# 由 scripts/setup_env.py 自动生成",
    ]
    for key, _desc, _default, _required in CONFIG_ITEMS:
        section = key.split("_")[0]
        header = SECTION_NAMES.get(section, f"# === {section} ===")
        if header not in env_lines:
            env_lines.append("")
            env_lines.append(header)
        env_lines.append(f"{key}={values[key]}")
    return env_lines


def main():
    print()
    print("=" * 60)
    print("  Venue Billing 配置向导")
    print("  生成 .env 配置文件")
    print("=" * 60)
    print()

    if os.path.exists(ENV_FILE):
        print(f"⚠️  检测到已有 .env 文件: {ENV_FILE}")
        choice = input("是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return
        print()

    values = {}
    for key, desc, default, required in CONFIG_ITEMS:
        req_tag = " [必填]" if required else ""
        default_hint = f" (默认: {default})" if default else ""
        print(f"📝 {desc}{req_tag}")

        while True:
            value = input(f"  {key}={default_hint}: ").strip()
            if not value:
                value = default
            if required and not value:
                print(f"  ❌ {key} 是必填项，请输入值。")
                continue
            break

        values[key] = value
        print()

    env_content = "\n".join(build_env_lines(values)) + "\n"

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write(env_content)

    print("=" * 60)
    print(f"  ✅ 配置文件已生成: {ENV_FILE}")
    print()
    print("  初始化数据库：")
    print("    python scripts/init_db.py")
    print()
    print("  启动服务：")
    print("    python app.py")
    print("=" * 60)


if __name__ == "__main__":
    main()
