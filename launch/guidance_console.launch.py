from ament_index_python.packages import get_package_share_path

from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():
    pkg_share = get_package_share_path('guidance_console')
    default_params = str(pkg_share / 'param' / 'guidance_console.yaml')

    # The vehicle stack (interface manager, guidance, route) must already be running.

    return LaunchDescription([
        DeclareLaunchArgument('namespace', default_value='saxton_cav'),
        DeclareLaunchArgument('params_file', default_value=default_params),
        DeclareLaunchArgument('session_file', default_value=''),

        Node(
            package='guidance_console',
            executable='guidance_console',
            name='guidance_console',
            namespace=LaunchConfiguration('namespace'),
            parameters=[
                LaunchConfiguration('params_file'),
                {'session_file': LaunchConfiguration('session_file')}
            ],
            output='screen'
        ),
    ])
