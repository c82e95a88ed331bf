# components/capsules.py
from enum import Enum

from components.node import Capsule
from utils.errors import ConfigurationInvalid

# Syscall driver numbers, mirrored from the kernel's driver number registry.
DRIVER_NUMBERS = {
    "alarm": 0x00000,
    "console": 0x00001,
    "led": 0x00002,
    "gpio": 0x00004,
    "lldb": 0x00008,
    "spi_controller": 0x20001,
    "i2c_master": 0x20003,
    "ble_radio": 0x30000,
    "rng": 0x40001,
    "hmac": 0x40003,
    "aes": 0x40006,
    "app_flash": 0x50000,
    "kv_driver": 0x50003,
    "temperature": 0x60000,
    "lsm303agr": 0x70006,
    "pattgen": 0x90000,
    "system_reset_controller": 0x90001,
    "alert_handler": 0x90002,
    "info_flash": 0x90003,
}


class LedType(Enum):
    LED_HIGH = "kernel::hil::led::LedHigh"
    LED_LOW = "kernel::hil::led::LedLow"


class Lsm303AccelDataRate(Enum):
    OFF = "Off"
    DATA_RATE_1HZ = "DataRate1Hz"
    DATA_RATE_10HZ = "DataRate10Hz"
    DATA_RATE_25HZ = "DataRate25Hz"
    DATA_RATE_50HZ = "DataRate50Hz"
    DATA_RATE_100HZ = "DataRate100Hz"
    DATA_RATE_200HZ = "DataRate200Hz"
    DATA_RATE_400HZ = "DataRate400Hz"
    LOW_POWER_1620HZ = "LowPower1620Hz"
    NORMAL_1344_LOW_POWER_5376HZ = "Normal1344LowPower5376Hz"


class Lsm303Scale(Enum):
    SCALE_2G = "Scale2G"
    SCALE_4G = "Scale4G"
    SCALE_8G = "Scale8G"
    SCALE_16G = "Scale16G"


class Lsm303MagnetoDataRate(Enum):
    DATA_RATE_0_75HZ = "DataRate0_75Hz"
    DATA_RATE_1_5HZ = "DataRate1_5Hz"
    DATA_RATE_3_0HZ = "DataRate3_0Hz"
    DATA_RATE_7_5HZ = "DataRate7_5Hz"
    DATA_RATE_15_0HZ = "DataRate15_0Hz"
    DATA_RATE_30_0HZ = "DataRate30_0Hz"
    DATA_RATE_75_0HZ = "DataRate75_0Hz"
    DATA_RATE_220_0HZ = "DataRate220_0Hz"


class Lsm303Range(Enum):
    RANGE_1G = "Range1G"
    RANGE_1_3G = "Range1_3G"
    RANGE_1_9G = "Range1_9G"
    RANGE_2_5G = "Range2_5G"
    RANGE_4_0G = "Range4_0G"
    RANGE_4_7G = "Range4_7G"
    RANGE_5_6G = "Range5_6G"
    RANGE_8_1G = "Range8_1G"


def _grant(driver_number):
    return f"board_kernel.create_grant({driver_number:#x}, &memory_allocation_cap)"


class Console(Capsule):
    def __init__(self, mux_uart):
        super().__init__("console", "capsules_core::console::Console<'static>",
                         DRIVER_NUMBERS["console"], [mux_uart])
        self.mux_uart = mux_uart

    def init_expr(self):
        return (
            f"components::console::ConsoleComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.mux_uart.identifier})"
            f".finalize(components::console_component_static!())"
        )


class Lldb(Capsule):
    def __init__(self, mux_uart):
        super().__init__(
            "lldb",
            "capsules_core::low_level_debug::LowLevelDebug<'static, "
            "capsules_core::virtualizers::virtual_uart::UartDevice<'static>>",
            DRIVER_NUMBERS["lldb"], [mux_uart],
        )
        self.mux_uart = mux_uart

    def init_expr(self):
        return (
            f"components::lldb::LowLevelDebugComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.mux_uart.identifier})"
            f".finalize(components::low_level_debug_component_static!())"
        )


class AlarmDriver(Capsule):
    def __init__(self, mux_alarm):
        timer_ty = mux_alarm.peripheral.type_signature
        super().__init__(
            "alarm",
            "capsules_core::alarm::AlarmDriver<'static, "
            f"capsules_core::virtualizers::virtual_alarm::VirtualMuxAlarm<'static, {timer_ty}>>",
            DRIVER_NUMBERS["alarm"], [mux_alarm],
        )
        self.mux_alarm = mux_alarm

    def init_expr(self):
        timer_ty = self.mux_alarm.peripheral.type_signature
        return (
            f"components::alarm::AlarmDriverComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.mux_alarm.identifier})"
            f".finalize(components::alarm_component_static!({timer_ty}))"
        )


class _PinCapsule(Capsule):
    def __init__(self, identifier, type_signature, pins):
        if not pins:
            raise ConfigurationInvalid(f"Capsule '{identifier}' needs at least one pin")
        super().__init__(identifier, type_signature, DRIVER_NUMBERS[identifier], list(pins))
        self.pins = list(pins)

    @property
    def pin_type(self):
        return self.pins[0].type_signature


class Led(_PinCapsule):
    def __init__(self, led_type, pins):
        self.led_type = led_type
        pin_ty = pins[0].type_signature if pins else None
        super().__init__(
            "led",
            f"capsules_core::led::LedDriver<'static, {led_type.value}<'static, {pin_ty}>, {len(pins)}>",
            pins,
        )

    def init_expr(self):
        leds = ", ".join(f"{self.led_type.value}::new({pin.identifier})" for pin in self.pins)
        return (
            "components::led::LedsComponent::new()"
            f".finalize(components::led_component_static!({self.led_type.value}<'static, {self.pin_type}>, {leds}))"
        )


class Gpio(_PinCapsule):
    def __init__(self, pins):
        pin_ty = pins[0].type_signature if pins else None
        super().__init__("gpio", f"capsules_core::gpio::GPIO<'static, {pin_ty}>", pins)

    def init_expr(self):
        pin_map = ", ".join(f"{pin.index} => {pin.identifier}" for pin in self.pins)
        return (
            f"components::gpio::GpioComponent::new(board_kernel, {self.driver_number:#x}, "
            f"components::gpio_component_helper!({self.pin_type}, {pin_map}))"
            f".finalize(components::gpio_component_static!({self.pin_type}))"
        )


class SpiController(Capsule):
    def __init__(self, mux_spi):
        spi_ty = mux_spi.peripheral.type_signature
        super().__init__(
            "spi_controller",
            "capsules_core::spi_controller::Spi<'static, "
            f"capsules_core::virtualizers::virtual_spi::VirtualSpiMasterDevice<'static, {spi_ty}>>",
            DRIVER_NUMBERS["spi_controller"], [mux_spi],
        )
        self.mux_spi = mux_spi

    def init_expr(self):
        spi_ty = self.mux_spi.peripheral.type_signature
        return (
            f"components::spi::SpiSyscallComponent::new(board_kernel, {self.mux_spi.identifier}, 0, "
            f"{self.driver_number:#x})"
            f".finalize(components::spi_syscall_component_static!({spi_ty}))"
        )


class I2CMasterDriver(Capsule):
    def __init__(self, i2c):
        super().__init__(
            "i2c_master",
            f"capsules_core::i2c_master::I2CMasterDriver<'static, {i2c.type_signature}>",
            DRIVER_NUMBERS["i2c_master"], [i2c],
        )
        self.peripheral = i2c

    def before_init(self):
        return (
            f"let {self.identifier}_buffer = kernel::static_init!("
            "[u8; capsules_core::i2c_master::BUFFER_LENGTH], "
            "[0; capsules_core::i2c_master::BUFFER_LENGTH]);"
        )

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_core::i2c_master::I2CMasterDriver::new({self.peripheral.identifier}, "
            f"{self.identifier}_buffer, {_grant(self.driver_number)}))"
        )

    def after_init(self):
        return f"kernel::hil::i2c::I2CMaster::set_master_client({self.peripheral.identifier}, {self.identifier});"


class BleRadio(Capsule):
    def __init__(self, ble, mux_alarm):
        timer_ty = mux_alarm.peripheral.type_signature
        super().__init__(
            "ble_radio",
            f"capsules_extra::ble_advertising_driver::BLE<'static, {ble.type_signature}, "
            f"capsules_core::virtualizers::virtual_alarm::VirtualMuxAlarm<'static, {timer_ty}>>",
            DRIVER_NUMBERS["ble_radio"], [ble, mux_alarm],
        )
        self.peripheral = ble
        self.mux_alarm = mux_alarm

    def init_expr(self):
        timer_ty = self.mux_alarm.peripheral.type_signature
        return (
            f"components::ble::BLEComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.peripheral.identifier}, {self.mux_alarm.identifier})"
            f".finalize(components::ble_component_static!({timer_ty}, {self.peripheral.type_signature}))"
        )


class AppFlash(Capsule):
    def __init__(self, mux_flash, buffer_size):
        if buffer_size <= 0:
            raise ConfigurationInvalid(f"Flash buffer size must be positive, got {buffer_size}")
        super().__init__(
            "app_flash", "capsules_extra::app_flash_driver::AppFlash<'static>",
            DRIVER_NUMBERS["app_flash"], [mux_flash],
        )
        self.mux_flash = mux_flash
        self.buffer_size = buffer_size

    def before_init(self):
        return (
            f"let {self.identifier}_buffer = kernel::static_init!("
            f"[u8; {self.buffer_size}], [0; {self.buffer_size}]);"
        )

    def init_expr(self):
        flash_ty = self.mux_flash.peripheral.type_signature
        return (
            f"components::app_flash_driver::AppFlashComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.mux_flash.identifier}, {self.identifier}_buffer)"
            f".finalize(components::app_flash_component_static!({flash_ty}, {self.buffer_size}))"
        )


class Lsm303agr(Capsule):
    def __init__(self, mux_i2c, accel_data_rate, low_power, accel_scale,
                 accel_high_resolution, temperature, mag_data_rate, mag_range):
        i2c_ty = mux_i2c.peripheral.type_signature
        super().__init__(
            "lsm303agr",
            "capsules_extra::lsm303agr::Lsm303agrI2C<'static, "
            f"capsules_core::virtualizers::virtual_i2c::I2CDevice<'static, {i2c_ty}>>",
            DRIVER_NUMBERS["lsm303agr"], [mux_i2c],
        )
        self.mux_i2c = mux_i2c
        self.accel_data_rate = accel_data_rate
        self.low_power = low_power
        self.accel_scale = accel_scale
        self.accel_high_resolution = accel_high_resolution
        self.temperature = temperature
        self.mag_data_rate = mag_data_rate
        self.mag_range = mag_range

    def init_expr(self):
        i2c_ty = self.mux_i2c.peripheral.type_signature
        return (
            f"components::lsm303agr::Lsm303agrI2CComponent::new({self.mux_i2c.identifier}, None, None, "
            f"board_kernel, {self.driver_number:#x})"
            f".finalize(components::lsm303agr_component_static!({i2c_ty}))"
        )

    def after_init(self):
        flag = lambda b: "true" if b else "false"
        return (
            f"{self.identifier}.configure("
            f"capsules_extra::lsm303xx::Lsm303AccelDataRate::{self.accel_data_rate.value}, "
            f"{flag(self.low_power)}, "
            f"capsules_extra::lsm303xx::Lsm303Scale::{self.accel_scale.value}, "
            f"{flag(self.accel_high_resolution)}, "
            f"{flag(self.temperature)}, "
            f"capsules_extra::lsm303xx::Lsm303MagnetoDataRate::{self.mag_data_rate.value}, "
            f"capsules_extra::lsm303xx::Lsm303Range::{self.mag_range.value});"
        )


class TemperatureCapsule(Capsule):
    def __init__(self, temp):
        super().__init__(
            "temperature",
            f"capsules_extra::temperature::TemperatureSensor<'static, {temp.type_signature}>",
            DRIVER_NUMBERS["temperature"], [temp],
        )
        self.peripheral = temp

    def init_expr(self):
        return (
            f"components::temperature::TemperatureComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.peripheral.identifier})"
            f".finalize(components::temperature_component_static!({self.peripheral.type_signature}))"
        )


class RngCapsule(Capsule):
    def __init__(self, rng):
        super().__init__(
            "rng",
            f"capsules_core::rng::RngDriver<'static, capsules_core::rng::Entropy32ToRandom<'static, {rng.type_signature}>>",
            DRIVER_NUMBERS["rng"], [rng],
        )
        self.peripheral = rng

    def init_expr(self):
        return (
            f"components::rng::RngComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.peripheral.identifier})"
            f".finalize(components::rng_component_static!({self.peripheral.type_signature}))"
        )


class HmacCapsule(Capsule):
    def __init__(self, hmac, length):
        if length <= 0:
            raise ConfigurationInvalid(f"HMAC length must be positive, got {length}")
        super().__init__(
            "hmac",
            f"capsules_extra::hmac::HmacDriver<'static, {hmac.type_signature}, {length}>",
            DRIVER_NUMBERS["hmac"], [hmac],
        )
        self.peripheral = hmac
        self.length = length

    def init_expr(self):
        return (
            f"components::hmac::HmacComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.peripheral.identifier})"
            f".finalize(components::hmac_component_static!({self.peripheral.type_signature}, {self.length}))"
        )


class AesCapsule(Capsule):
    """
    AES-GCM driver over a virtual CCM client of the shared AES mux.
    The crypt buffer holds `number_of_blocks` AES blocks.
    """

    def __init__(self, mux_aes, number_of_blocks):
        if number_of_blocks <= 0:
            raise ConfigurationInvalid(f"AES block count must be positive, got {number_of_blocks}")
        self.mux_aes = mux_aes
        self.number_of_blocks = number_of_blocks
        super().__init__("aes", f"capsules_extra::symmetric_encryption::aes::AesDriver<'static, {self.gcm_type}>",
                         DRIVER_NUMBERS["aes"], [mux_aes])

    @property
    def gcm_type(self):
        aes_ty = self.mux_aes.peripheral.type_signature
        return (
            "capsules_aes_gcm::aes_gcm::Aes128Gcm<'static, "
            f"capsules_core::virtualizers::virtual_aes_ccm::VirtualAES128CCM<'static, {aes_ty}>>"
        )

    def before_init(self):
        aes_ty = self.mux_aes.peripheral.type_signature
        ident = self.identifier
        return "\n".join([
            f"const {ident.upper()}_CRYPT_SIZE: usize = {self.number_of_blocks} * kernel::hil::symmetric_encryption::AES128_BLOCK_SIZE;",
            f"let {ident}_ccm_client = components::aes::AesVirtualComponent::new({self.mux_aes.identifier})"
            f".finalize(components::aes_virtual_component_static!({aes_ty}));",
            f"let {ident}_crypt_buf = kernel::static_init!([u8; {ident.upper()}_CRYPT_SIZE], [0x00; {ident.upper()}_CRYPT_SIZE]);",
            f"let {ident}_gcm_client = kernel::static_init!({self.gcm_type}, "
            f"capsules_aes_gcm::aes_gcm::Aes128Gcm::new({ident}_ccm_client, {ident}_crypt_buf));",
            f"kernel::hil::symmetric_encryption::AES128::set_client({ident}_gcm_client, {ident}_ccm_client);",
        ])

    def init_expr(self):
        return (
            f"components::aes::AesDriverComponent::new(board_kernel, {self.driver_number:#x}, "
            f"{self.identifier}_gcm_client)"
            f".finalize(components::aes_driver_component_static!({self.gcm_type}))"
        )


class KvDriver(Capsule):
    def __init__(self, mux_flash):
        flash = mux_flash.peripheral
        self.mux_flash = mux_flash
        super().__init__(
            "kv_driver",
            "capsules_extra::kv_driver::KVStoreDriver<'static, capsules_extra::virtual_kv::VirtualKVPermissions<'static, "
            "capsules_extra::kv_store_permissions::KVStorePermissions<'static, "
            "capsules_extra::tickv_kv_store::TicKVKVStore<'static, capsules_extra::tickv::TicKVSystem<'static, "
            f"capsules_core::virtualizers::virtual_flash::FlashUser<'static, {flash.type_signature}>, "
            f"capsules_extra::sip_hash::SipHasher24<'static>, {{ {flash.page_size} }}>, [u8; 8]>>>>",
            DRIVER_NUMBERS["kv_driver"], [mux_flash],
        )

    def before_init(self):
        flash = self.mux_flash.peripheral
        ident = self.identifier
        page_ty = flash.page_type or f"[u8; {flash.page_size}]"
        return "\n".join([
            f"let {ident}_read_buf = kernel::static_init!([u8; {flash.page_size}], [0; {flash.page_size}]);",
            f"let {ident}_page_buffer = kernel::static_init!({page_ty}, {page_ty}::default());",
            f"let {ident}_sip_hash = kernel::static_init!(capsules_extra::sip_hash::SipHasher24, "
            "capsules_extra::sip_hash::SipHasher24::new());",
            f"kernel::deferred_call::DeferredCallClient::register({ident}_sip_hash);",
            f"let {ident}_tickv = components::tickv::TicKVComponent::new({ident}_sip_hash, "
            f"{self.mux_flash.identifier}, {flash.pages_per_bank} - 1, "
            f"{flash.pages_per_bank} * {flash.page_size}, {ident}_read_buf, {ident}_page_buffer)"
            f".finalize(components::tickv_component_static!({flash.type_signature}, "
            f"capsules_extra::sip_hash::SipHasher24, {flash.page_size}));",
            f"let {ident}_kv_store = components::kv::TicKVKVStoreComponent::new({ident}_tickv)"
            f".finalize(components::tickv_kv_store_component_static!(capsules_extra::tickv::TicKVSystem<'static, "
            f"capsules_core::virtualizers::virtual_flash::FlashUser<'static, {flash.type_signature}>, "
            f"capsules_extra::sip_hash::SipHasher24<'static>, {flash.page_size}>, "
            "capsules_extra::tickv::TicKVKeyType));",
            f"let {ident}_permissions = components::kv::KVStorePermissionsComponent::new({ident}_kv_store)"
            ".finalize(components::kv_store_permissions_component_static!());",
            f"let {ident}_virtual_kv = components::kv::VirtualKVPermissionsComponent::new({ident}_permissions)"
            ".finalize(components::virtual_kv_permissions_component_static!());",
        ])

    def init_expr(self):
        return (
            f"components::kv::KVDriverComponent::new({self.identifier}_virtual_kv, board_kernel, "
            f"{self.driver_number:#x})"
            f".finalize(components::kv_driver_component_static!())"
        )


class InfoFlash(Capsule):
    def __init__(self, flash):
        super().__init__(
            "info_flash",
            f"capsules_extra::info_flash::InfoFlash<'static, {flash.type_signature}>",
            DRIVER_NUMBERS["info_flash"], [flash],
        )
        self.peripheral = flash

    def before_init(self):
        page_ty = self.peripheral.page_type or f"[u8; {self.peripheral.page_size}]"
        return f"let {self.identifier}_page = kernel::static_init!({page_ty}, {page_ty}::default());"

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_extra::info_flash::InfoFlash::new({self.peripheral.identifier}, "
            f"{_grant(self.driver_number)}, {self.identifier}_page))"
        )

    def after_init(self):
        return (
            "use kernel::hil::flash::HasInfoClient;\n"
            f"{self.peripheral.identifier}.set_info_client({self.identifier});"
        )


class PattgenCapsule(Capsule):
    def __init__(self, pattgen):
        super().__init__(
            "pattgen",
            f"capsules_extra::pattgen::PattGen<'static, {pattgen.type_signature}>",
            DRIVER_NUMBERS["pattgen"], [pattgen],
        )
        self.peripheral = pattgen

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_extra::pattgen::PattGen::new({self.peripheral.identifier}, {_grant(self.driver_number)}))"
        )

    def after_init(self):
        return f"kernel::hil::pattgen::PattGen::set_client({self.peripheral.identifier}, {self.identifier});"


class SystemResetControllerCapsule(Capsule):
    def __init__(self, system_reset_controller):
        super().__init__(
            "system_reset_controller",
            f"capsules_extra::opentitan_sysrst::SystemReset<'static, {system_reset_controller.type_signature}>",
            DRIVER_NUMBERS["system_reset_controller"], [system_reset_controller],
        )
        self.peripheral = system_reset_controller

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_extra::opentitan_sysrst::SystemReset::new({self.peripheral.identifier}, "
            f"{_grant(self.driver_number)}))"
        )


class AlertHandlerCapsule(Capsule):
    def __init__(self, alert_handler):
        super().__init__(
            "alert_handler",
            "capsules_extra::opentitan_alerthandler::AlertHandlerCapsule",
            DRIVER_NUMBERS["alert_handler"], [alert_handler],
        )
        self.peripheral = alert_handler

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_extra::opentitan_alerthandler::AlertHandlerCapsule::new({_grant(self.driver_number)}))"
        )

    def after_init(self):
        return f"earlgrey::alert_handler::AlertHandler::set_client({self.peripheral.identifier}, {self.identifier});"
