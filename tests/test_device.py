from dungym import device as device_module
from dungym.device import CUE_PULSES, DeviceCapabilities, KivyDevice


class FakeSound:
    def __init__(self):
        self.played = 0
        self.volume = None

    def play(self):
        self.played += 1

    def stop(self):
        pass


class FakeLoader:
    def __init__(self):
        self.sound = FakeSound()
        self.loaded = []

    def load(self, filename):
        self.loaded.append(filename)
        return self.sound


def test_base_capabilities_are_no_ops():
    caps = DeviceCapabilities()
    caps.play_cue()
    caps.vibrate()
    caps.acquire_wake_lock()
    caps.release_wake_lock()


def test_cue_plays_three_spaced_pulses(clock, monkeypatch):
    loader = FakeLoader()
    monkeypatch.setattr(device_module, "SoundLoader", loader)
    dev = KivyDevice(sound_level=0.5, clock=clock)
    dev.play_cue()
    assert loader.sound.played == 0
    clock.advance(0)
    assert loader.sound.played == 1
    clock.advance(0.5)
    assert loader.sound.played == CUE_PULSES
    assert loader.sound.volume == 0.5
    assert len(loader.loaded) == 1
    assert loader.loaded[0].endswith("beep.wav")


def test_cue_muted(clock, monkeypatch):
    loader = FakeLoader()
    monkeypatch.setattr(device_module, "SoundLoader", loader)
    KivyDevice(sound_on=False, clock=clock).play_cue()
    clock.advance(1)
    assert loader.sound.played == 0


def test_android_services_absent(monkeypatch, clock):
    monkeypatch.setattr(device_module, "autoclass", None)
    dev = KivyDevice(clock=clock)
    dev.vibrate()
    dev.acquire_wake_lock()
    dev.release_wake_lock()


def test_android_vibration_and_wake_lock(monkeypatch, clock):
    calls = []

    class Lock:
        held = False

        def acquire(self):
            self.held = True
            calls.append("acquire")

        def isHeld(self):
            return self.held

        def release(self):
            self.held = False
            calls.append("release")

    class Service:
        def vibrate(self, pattern, repeat):
            calls.append(("vibrate", tuple(pattern), repeat))

        def newWakeLock(self, flags, tag):
            calls.append(("lock", tag))
            return Lock()

    class Activity:
        def getSystemService(self, name):
            return Service()

    class Java:
        mActivity = Activity()
        VIBRATOR_SERVICE = "vibrator"
        POWER_SERVICE = "power"
        SCREEN_BRIGHT_WAKE_LOCK = 10
        ON_AFTER_RELEASE = 0x20000000

    monkeypatch.setattr(device_module, "autoclass", lambda name: Java)
    dev = KivyDevice(clock=clock)
    dev.vibrate()
    dev.acquire_wake_lock()
    dev.acquire_wake_lock()
    dev.release_wake_lock()
    assert calls == [
        ("vibrate", (0, 200, 100, 200, 100, 200), -1),
        ("lock", device_module.WAKE_LOCK_TAG),
        "acquire",
        "release",
    ]
