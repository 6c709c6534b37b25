"""Build configuration for Poster Tiler.

Usage:
    pip install -e .[test]        # library, GUI and CLI entry points
    python setup.py py2app        # macOS app bundle

Produces (py2app): dist/Poster Tiler.app
"""
import sys

from setuptools import setup

APP = ['poster_app.py']
DATA_FILES = []
OPTIONS = {
    'argv_emulation': False,  # must be False for Qt apps
    'plist': {
        'CFBundleName': 'Poster Tiler',
        'CFBundleDisplayName': 'Poster Tiler',
        'CFBundleIdentifier': 'com.postertiler.app',
        'CFBundleVersion': '1.0.0',
        'CFBundleShortVersionString': '1.0',
        'LSMinimumSystemVersion': '11.0',
        'NSHighResolutionCapable': True,
        'CFBundleDocumentTypes': [{
            'CFBundleTypeName': 'Poster Tiler Project',
            'CFBundleTypeExtensions': ['poster'],
            'CFBundleTypeRole': 'Editor',
            'LSHandlerRank': 'Owner',
            'LSItemContentTypes': ['com.postertiler.poster'],
        }],
        'UTExportedTypeDeclarations': [{
            'UTTypeIdentifier': 'com.postertiler.poster',
            'UTTypeDescription': 'Poster Tiler Project',
            'UTTypeConformsTo': ['public.data'],
            'UTTypeTagSpecification': {
                'public.filename-extension': ['poster'],
            },
        }],
    },
    'packages': ['PySide6', 'PIL'],
    'strip': False,  # avoid "Operation not permitted" on macOS SIP-protected binaries
}

extra = {}
if 'py2app' in sys.argv:
    extra = dict(app=APP, data_files=DATA_FILES, options={'py2app': OPTIONS},
                 setup_requires=['py2app'])

setup(
    name='poster-tiler',
    version='1.0.0',
    description='Split an image across printer pages to build a large poster',
    python_requires='>=3.10',
    py_modules=[
        'units', 'models', 'decorations', 'tiler', 'renderer',
        'views', 'controller', 'poster_app', 'poster_split',
    ],
    install_requires=['Pillow>=9.1', 'PySide6<6.12'],
    extras_require={'test': ['pytest', 'pytest-qt']},
    entry_points={
        'console_scripts': [
            'poster-split=poster_split:main',
        ],
        'gui_scripts': [
            'poster-tiler=poster_app:main',
        ],
    },
    **extra,
)
