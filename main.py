# main.py
from pathlib import Path
import logging
import sys

from PySide6.QtWidgets import QApplication

from huehunter.input.global_hotkeys import GlobalHotkeyService
from huehunter.logging_setup import setup_logging
from huehunter.pick.session import ColorPicker, PickerOptions
from huehunter.repos.settings_repo import SettingsRepo
from huehunter.runtime.loop_thread import LoopThread
from huehunter.sampler.locate import resolve_sampler_command
from huehunter.sampler.manager import SamplerProcessManager
from qtui.dispatcher import QtDispatcher
from qtui.magnifier.surface import QtMagnifierSurface
from qtui.main_window import MainWindow

log = logging.getLogger(__name__)


def main():
    app_data_dir = Path("app_data")

    # 配置
    settings_repo = SettingsRepo(app_data_dir)
    settings = settings_repo.load_or_create()

    # 日志
    log_rt = setup_logging(
        log_dir=app_data_dir / "logs",
        level=settings.logging.level,
        keep_days=settings.logging.keep_days,
        console=settings.logging.console,
    )

    # Qt 应用（dispatcher 必须在 GUI 线程创建）
    app = QApplication(sys.argv)
    dispatcher = QtDispatcher()

    # asyncio 循环跑在后台线程
    loop_thread = LoopThread()
    loop_thread.start()

    hotkeys = GlobalHotkeyService()

    command = resolve_sampler_command(settings.sampler.command or None)
    log.info("sampler command: %s", command)
    manager = SamplerProcessManager(
        command,
        stop_timeout_s=settings.sampler.stop_timeout_ms / 1000.0,
        kill_grace_s=settings.sampler.kill_grace_ms / 1000.0,
    )
    picker = ColorPicker(
        surface_factory=lambda: QtMagnifierSurface(dispatcher),
        hotkeys=hotkeys,
        manager=manager,
        options=PickerOptions.from_settings(settings.picker, settings.hotkeys),
    )

    win = MainWindow(
        picker=picker,
        loop_thread=loop_thread,
        dispatcher=dispatcher,
        hotkeys=hotkeys,
        start_hotkey=settings.hotkeys.start_pick,
    )
    win.show()

    try:
        return app.exec()
    finally:
        try:
            loop_thread.submit(picker.close()).result(timeout=2.0)
        except Exception:
            log.exception("closing picker failed")
        hotkeys.close()
        loop_thread.stop()
        log_rt.stop()


if __name__ == "__main__":
    sys.exit(main())
