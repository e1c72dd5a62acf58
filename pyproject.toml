[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "periphsim"
version = "0.1.0"
description = "Peripheral models and host-side viewers for a simulated platform: timer, TTY and serial devices, pixel conversion, frame-buffer and RAMDAC viewers, a load chronograph and a raw terminal relay."
requires-python = ">=3.10"
dependencies = [
    "pygame",
]
keywords = [
    "emulator",
    "simulation",
    "peripheral",
    "framebuffer",
    "yuv",
    "serial",
    "tty",
    "timer",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
periphsim-fbviewer = "periphsim.fb_viewer:main"
periphsim-ramdac = "periphsim.xramdac:main"
periphsim-chronograph = "periphsim.chronograph:main"
periphsim-term-rw = "periphsim.tty_term_rw:main"

[tool.hatch.build.targets.wheel]
packages = ["periphsim"]

[tool.hatch.build.targets.sdist]
include = [
    "periphsim",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
