import numpy as np

from alarms.sounds import AlarmSound, CueKind, RepeatingCue, SoundCue, ring_tones, tones_for
from audio_io import AudioOutput, Tone, render_tones


class RecordingOutput:
    sample_rate = 8000

    def __init__(self):
        self.played = []

    def play(self, samples):
        self.played.append(samples)
        return True


class BrokenOutput:
    sample_rate = 8000

    def play(self, samples):
        raise OSError("no output device")


class FakeMonotonic:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_none_is_silent_in_every_table():
    assert tones_for(CueKind.WARNING, AlarmSound.NONE, 3) == ()
    assert tones_for(CueKind.TERMINAL, AlarmSound.NONE) == ()
    assert ring_tones(AlarmSound.NONE) == ()


def test_every_sound_has_tones_for_every_cue():
    for sound in AlarmSound:
        if sound is AlarmSound.NONE:
            continue
        assert tones_for(CueKind.WARNING, sound, 2)
        assert tones_for(CueKind.TERMINAL, sound)
        assert ring_tones(sound)


def test_chime_warning_rises_each_second():
    freqs = [tones_for(CueKind.WARNING, AlarmSound.CHIME, s)[0].frequency for s in (3, 2, 1)]
    assert freqs == [880, 1000, 1120]


def test_terminal_beep_is_one_long_low_tone():
    assert tones_for(CueKind.TERMINAL, AlarmSound.BEEP) == (Tone(600, 0.0, 0.9, 0.25),)


def test_sound_coercion():
    assert AlarmSound.coerce("SIREN") is AlarmSound.SIREN
    assert AlarmSound.coerce(AlarmSound.BELL) is AlarmSound.BELL
    assert AlarmSound.coerce("kazoo") is AlarmSound.CHIME
    assert AlarmSound.coerce(None) is AlarmSound.CHIME
    assert AlarmSound.coerce("kazoo", default=AlarmSound.BEEP) is AlarmSound.BEEP


def test_render_mixes_within_range():
    samples = render_tones(ring_tones(AlarmSound.BELL), 8000)
    assert samples.dtype == np.float32
    assert abs(len(samples) - 0.26 * 8000) <= 2
    assert 0.05 < float(np.max(np.abs(samples))) <= 1.0


def test_render_sweep_and_empty():
    assert render_tones((), 8000).size == 0
    sweep = render_tones((Tone(600, 0.0, 0.35, end_frequency=1400),), 8000)
    assert float(np.max(np.abs(sweep))) <= 0.22 + 1e-6


def test_sound_cue_sends_rendered_audio():
    output = RecordingOutput()
    cue = SoundCue(output)
    tones = cue.play(CueKind.WARNING, "beep", 3)
    assert tones == (Tone(1100, 0.0, 0.12, 0.18),)
    assert len(output.played) == 1
    cue.play(CueKind.TERMINAL, AlarmSound.NONE)
    assert len(output.played) == 1


def test_sound_cue_without_output_is_a_no_op():
    assert SoundCue().ring(AlarmSound.CHIME) == ring_tones(AlarmSound.CHIME)


def test_sound_cue_swallows_output_errors():
    cue = SoundCue(BrokenOutput())
    assert cue.play(CueKind.TERMINAL, AlarmSound.SIREN)


def test_repeating_cue_rings_on_interval():
    output = RecordingOutput()
    clock = FakeMonotonic()
    ring = RepeatingCue(SoundCue(output), interval_seconds=1.3, clock=clock)

    ring.start("digital")
    assert ring.active and ring.sound is AlarmSound.DIGITAL
    assert len(output.played) == 1
    assert ring.poll() is False

    clock.now = 4.0
    assert ring.poll() is True
    # a long stall replays one ring, not a backlog
    assert ring.poll() is False
    assert len(output.played) == 2


def test_repeating_cue_released_on_exit():
    output = RecordingOutput()
    clock = FakeMonotonic()
    with RepeatingCue(SoundCue(output), clock=clock) as ring:
        ring.start(AlarmSound.BEEP)
    assert not ring.active
    clock.now = 10.0
    assert ring.poll() is False


def test_disabled_audio_output_refuses_playback():
    output = AudioOutput(sample_rate=8000, enabled=False)
    assert output.available is False
    assert output.play(np.ones(16, dtype=np.float32)) is False
    output.close()


def _window_peak(samples, start, end, rate=8000):
    return float(np.max(np.abs(samples[int(start * rate) : int(end * rate)])))


def test_siren_is_one_sweep_under_one_envelope():
    ring = ring_tones(AlarmSound.SIREN)
    terminal = tones_for(CueKind.TERMINAL, AlarmSound.SIREN)
    assert len(ring) == 1 and len(terminal) == 1
    assert ring[0].via_frequency == 1400 and ring[0].end_frequency == 600

    samples = render_tones(ring, 8000)
    # no fresh attack at the turnaround, the level keeps falling
    assert _window_peak(samples, 0.30, 0.34) > _window_peak(samples, 0.36, 0.40)
    assert _window_peak(samples, 0.36, 0.40) > _window_peak(samples, 0.60, 0.64)

    faster = render_tones(terminal, 8000)
    assert _window_peak(faster, 0.60, 0.64) < _window_peak(samples, 0.60, 0.64)
