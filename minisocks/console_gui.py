from typing import *
from aioconsole import ainput

from .agent import Agent


async def AGENT_CONSOLE(agent: Agent, prompt: str = ''):
    async with agent:
        agent.logger.info(f'{agent.role} console started, type "ex" or "q" to close, "stats" to show sessions')
        while agent.running:
            try:
                command = await ainput(prompt)
                cmdargs = command.split()
                if not cmdargs:
                    continue
                cmd = cmdargs[0]

                if cmd in ['ex', 'q', 'exit', 'quit']:
                    break
                elif cmd == 'stats':
                    agent.logger.info(
                        f'{agent}: {len(agent.sessions)} active sessions, {agent.sessions_total} since start'
                    )
                else:
                    agent.logger.warning(f'Unknown command "{cmd}"')

            except (KeyboardInterrupt, EOFError):
                break
