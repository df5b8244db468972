import os.path

import setuptools

root_dir = os.path.abspath(os.path.dirname(__file__))
readme_file = os.path.join(root_dir, "README.rst")
with open(readme_file, encoding="utf-8") as f:
    long_description = f.read()

install_requires = [
    "aiortc>=1.9.0",
    "attrs",
    "av",
    "numpy",
    "pyee>=9.0.0",
    "selenium>=4.10",
]

extras_require = {
    "test": [
        "coverage[toml]>=7.2.2",
        'typing_extensions; python_version < "3.10"',
    ],
}

setuptools.setup(
    name="rtcinterop",
    version="0.1.0",
    description="WebRTC renegotiation interoperability harness",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    license="BSD",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Testing",
    ],
    package_dir={"": "src"},
    packages=["rtcinterop"],
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={"console_scripts": ["rtcinterop = rtcinterop.__main__:main"]},
)
