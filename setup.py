from setuptools import setup, find_packages

package_name = 'gesture_led'

setup(
    name=package_name,
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'setuptools',
        'numpy>=1.24',
        'opencv-python>=4.8',
        'mediapipe>=0.10.0,<0.10.30',
        'fastapi>=0.104.0',
        'uvicorn>=0.24.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'httpx>=0.25',
        ],
    },
    zip_safe=True,
    maintainer='Hasan Çoban',
    maintainer_email='hasancoban@std.iyte.edu.tr',
    description='Open-hand gesture to network LED switch, with a bench LED gateway',
    license='MIT',
    entry_points={
        'console_scripts': [
            'gesture_led = client_gesture_led.main:main',
            'led_gateway = led_gateway.main:main',
        ],
    },
)
