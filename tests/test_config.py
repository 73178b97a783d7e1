"""
Configuration tests: profiles, JSON files, overrides and validation.
"""
import sys
import os
import json
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from alpha_interp.config import PROFILES, MachineConfig, from_profile, load_config
from alpha_interp.errors import ConfigError
from alpha_interp.translator import translate


def write_json(tmp_path, data, name="machine.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestProfiles:
    def test_every_profile_is_valid(self):
        for name in PROFILES:
            config = from_profile(name).validate()
            assert config.profile == name

    def test_default_profile(self):
        config = load_config()
        assert (config.accumulators, config.memory_cells) == (4, 16)
        assert config.max_steps is None

    def test_lecture_profile(self):
        config = load_config(profile="lecture")
        assert config.memory_cells == 6

    def test_unknown_profile(self):
        with pytest.raises(ConfigError):
            load_config(profile="mainframe")


class TestConfigFile:
    def test_file_values(self, tmp_path):
        path = write_json(tmp_path, {
            "accumulators": 2, "memory_cells": 4,
            "memory": {"1": 9}, "breakpoints": [3], "max_steps": 50,
        })
        config = load_config(path)
        assert config.accumulators == 2
        assert config.memory_cells == 4
        assert config.memory == {1: 9}
        assert config.breakpoints == [3]
        assert config.max_steps == 50

    def test_file_names_profile(self, tmp_path):
        path = write_json(tmp_path, {"profile": "large"})
        assert load_config(path).accumulators == 16

    def test_memory_as_list(self, tmp_path):
        path = write_json(tmp_path, {"memory": [3, 0, 7]})
        assert load_config(path).memory == {0: 3, 2: 7}

    def test_overrides_win(self, tmp_path):
        path = write_json(tmp_path, {"accumulators": 2, "memory_cells": 4})
        config = load_config(path, accumulators=8, memory_cells=None)
        assert config.accumulators == 8
        assert config.memory_cells == 4

    def test_override_memory_merges(self, tmp_path):
        path = write_json(tmp_path, {"memory": {"0": 1, "1": 2}})
        config = load_config(path, memory={1: 5})
        assert config.memory == {0: 1, 1: 5}

    def test_bundled_lecture_config(self):
        root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        config = load_config(os.path.join(root, "examples", "lecture.json"))
        assert config.profile == "lecture"
        assert config.memory == {0: 5}
        assert config.max_steps == 10000

    def test_unknown_key(self, tmp_path):
        path = write_json(tmp_path, {"acumulators": 2})
        with pytest.raises(ConfigError, match="acumulators"):
            load_config(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_an_object(self, tmp_path):
        path = write_json(tmp_path, [1, 2, 3])
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.json")

    def test_bad_value_type(self, tmp_path):
        path = write_json(tmp_path, {"memory_cells": "many"})
        with pytest.raises(ConfigError):
            load_config(path)


class TestValidation:
    @pytest.mark.parametrize("kwargs", [
        {"accumulators": 0},
        {"memory_cells": -1},
        {"memory_cells": 2, "memory": {2: 1}},
        {"max_steps": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigError):
            MachineConfig(**kwargs).validate()


class TestCreateMachine:
    def test_breakpoint_lines_map_to_addresses(self):
        program = translate(["a0 := 1", "", "# note", "a1 := 2", "ENDE"])
        config = MachineConfig(breakpoints=[2, 5])
        machine = config.create_machine(program)
        assert machine.breakpoints == (1, 2)

    def test_breakpoint_past_end_ignored(self):
        program = translate(["a0 := 1"])
        machine = MachineConfig(breakpoints=[9]).create_machine(program)
        assert machine.breakpoints == ()

    def test_memory_preloaded(self):
        program = translate(["a0 := ρ(3)"])
        machine = MachineConfig(memory={3: 11}).create_machine(program)
        machine.run()
        assert machine.accumulators[0] == 11
